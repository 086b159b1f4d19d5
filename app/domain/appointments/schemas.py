"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

ServiceType = Literal["testing", "web", "it", "other"]
AppointmentStatus = Literal["scheduled", "confirmed", "completed", "cancelled", "no-show"]

SERVICE_TYPES: tuple[str, ...] = ("testing", "web", "it", "other")
STATUSES: tuple[str, ...] = ("scheduled", "confirmed", "completed", "cancelled", "no-show")
TEST_TYPES: tuple[str, ...] = ("lab", "poct", "poct-to-lab", "breath-alcohol", "dot")
# Point-of-collection tests need a kit identifier
KIT_TEST_TYPES: tuple[str, ...] = ("poct", "poct-to-lab")
SUBSTANCES: tuple[str, ...] = (
    "amphetamines",
    "cocaine",
    "cannabis",
    "opiates",
    "pcp",
    "methamphetamine",
    "benzodiazepines",
    "oxycodone",
    "fentanyl",
    "alcohol",
)


class DrugTesting(BaseModel):
    testType: str
    testingKit: Optional[str] = None
    substances: list[str] = []
    cleanCardRequired: bool = False


class AppointmentResponse(BaseModel):
    """Canonical appointment record shared by the REST routes and calendar sessions"""

    id: str
    title: str
    companyId: Optional[str] = None
    appointmentDate: datetime
    startTime: str
    duration: int = 30
    endTime: Optional[str] = None
    serviceType: str = "other"
    status: str = "scheduled"
    location: Optional[str] = None
    notes: Optional[str] = None
    drugTesting: Optional[DrugTesting] = None
    version: int = 1
    lastMutationId: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def day(self) -> date:
        return self.appointmentDate.date()


class AppointmentReschedule(BaseModel):
    """Drag-and-drop move to another calendar day"""

    date: date
    mutationId: Optional[str] = None
