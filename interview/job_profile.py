from __future__ import annotations  # Job definitions: canonical check order and scoring caps

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class JobNotFound(LookupError):  # Unknown job id
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class MandatoryRequirement(BaseModel):  # Disqualifying gate
    id: str
    label: str
    question: str
    disqualify_condition: str


class PreferredRequirement(BaseModel):  # Weighted, non-disqualifying dimension
    id: str
    label: str
    question: str
    max_score: int = Field(ge=0)
    scoring_description: str
    strength_threshold: Optional[int] = None
    strength_label: Optional[str] = None


class JobProfile(BaseModel):  # Read-only job definition referenced by interview records
    job_id: str
    title: str
    company: str
    location: str
    mandatory: List[MandatoryRequirement] = Field(min_length=1)
    preferred: List[PreferredRequirement] = Field(default_factory=list)
    veteran_question: str = "Have you served in the military?"
    opening_message: str

    @property
    def mandatory_order(self) -> List[str]:
        return [item.id for item in self.mandatory]

    @property
    def preferred_order(self) -> List[str]:
        return [item.id for item in self.preferred]

    def mandatory_requirement(self, check_id: str) -> Optional[MandatoryRequirement]:
        return next((item for item in self.mandatory if item.id == check_id), None)

    def preferred_requirement(self, dimension_id: str) -> Optional[PreferredRequirement]:
        return next((item for item in self.preferred if item.id == dimension_id), None)

    def mandatory_label(self, check_id: str) -> str:
        requirement = self.mandatory_requirement(check_id)
        return requirement.label if requirement else check_id

    @property
    def preferred_max_total(self) -> int:
        return sum(item.max_score for item in self.preferred)


DEFAULT_JOB = JobProfile(
    job_id="fedex-driver-001",
    title="FedEx Ground ISP Delivery Driver (Non-CDL)",
    company="Tsavo West Inc",
    location="Tampa, Florida 33610",
    mandatory=[
        MandatoryRequirement(
            id="age",
            label="Age (21+)",
            question="Are you at least 21 years old?",
            disqualify_condition="Under 21",
        ),
        MandatoryRequirement(
            id="validLicense",
            label="Valid Driver's License",
            question="Do you have a valid driver's license?",
            disqualify_condition="No license or suspended",
        ),
        MandatoryRequirement(
            id="drivingRecord",
            label="Clean Driving Record",
            question="Have you had any major driving violations in the past 3 years?",
            disqualify_condition="Multiple violations, DUI, suspended",
        ),
        MandatoryRequirement(
            id="backgroundCheck",
            label="Background Check Willingness",
            question="Are you willing to undergo a background check?",
            disqualify_condition="Unwilling",
        ),
        MandatoryRequirement(
            id="drugScreening",
            label="Drug Screening Willingness",
            question="Are you willing to pass a drug screening?",
            disqualify_condition="Unwilling",
        ),
        MandatoryRequirement(
            id="liftingCapability",
            label="Lifting Capability (150 lbs)",
            question="Can you lift packages up to 150 pounds?",
            disqualify_condition="Cannot lift",
        ),
        MandatoryRequirement(
            id="weekendAvailability",
            label="Weekend Availability",
            question="Are you available to work one weekend day each week?",
            disqualify_condition="Not available",
        ),
        MandatoryRequirement(
            id="longShiftFlexibility",
            label="Long Shift Flexibility (10-12 hrs)",
            question="Can you work 10-hour shifts starting at 7:30 AM?",
            disqualify_condition="Cannot work",
        ),
    ],
    preferred=[
        PreferredRequirement(
            id="deliveryExperience",
            label="Prior Delivery/Courier Experience",
            question="Do you have any prior delivery or courier experience?",
            max_score=20,
            scoring_description="0pts=none, 10pts=some, 15pts=6mo-1yr, 20pts=1yr+",
            strength_threshold=15,
            strength_label="strong delivery experience",
        ),
        PreferredRequirement(
            id="timeManagement",
            label="Time Management Skills",
            question="How do you manage your time when you have a lot of tasks to finish?",
            max_score=15,
            scoring_description="0pts=poor, 7pts=average, 15pts=excellent with examples",
            strength_threshold=10,
            strength_label="good time management",
        ),
        PreferredRequirement(
            id="independence",
            label="Ability to Work Independently",
            question="How comfortable are you working on your own for most of the day?",
            max_score=15,
            scoring_description="0pts=not comfortable, 7pts=somewhat, 15pts=very with examples",
            strength_threshold=10,
            strength_label="comfortable working independently",
        ),
    ],
    veteran_question="Last question: have you served in the military? Veterans receive bonus points.",
    opening_message=(
        "Hi there! 👋 I'm an AI assistant helping Tsavo West Inc with applications "
        "for the FedEx Ground Delivery Driver position here in Tampa, Florida.\n\n"
        "This should only take about 5-10 minutes. I'll ask you some questions to see "
        "if the role is a good fit, and then I'll give you immediate feedback on your application.\n\n"
        "Ready to get started? First, what's your name?"
    ),
)

JOB_PROFILES: Dict[str, JobProfile] = {DEFAULT_JOB.job_id: DEFAULT_JOB}


def get_job_profile(job_id: str, profiles: Optional[Dict[str, JobProfile]] = None) -> JobProfile:
    """Look up a job definition, raising ``JobNotFound`` for unknown ids."""

    catalog = JOB_PROFILES if profiles is None else profiles
    try:
        return catalog[job_id]
    except KeyError:
        raise JobNotFound(job_id) from None


__all__ = [
    "DEFAULT_JOB",
    "JOB_PROFILES",
    "JobNotFound",
    "JobProfile",
    "MandatoryRequirement",
    "PreferredRequirement",
    "get_job_profile",
]
