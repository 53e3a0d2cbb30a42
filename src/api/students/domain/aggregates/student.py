"""Student aggregate for the students context."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from students.domain.events import (
    ContactType,
    DomainEvent,
    GuardianSnapshot,
    StudentContactUpdated,
    StudentDeleted,
    StudentEnrolled,
    StudentGraduated,
    StudentReactivated,
    StudentSuspended,
    StudentTransferred,
    StudentUpdated,
)
from students.domain.value_objects import (
    Address,
    Email,
    Gender,
    GuardianInfo,
    PhoneNumber,
    StudentId,
    StudentNumber,
    StudentStatus,
    calculate_age,
    validate_person_name,
)
from students.ports.exceptions import StudentValidationError

MIN_STUDENT_AGE = 3
MAX_STUDENT_AGE = 25
MIN_NATIONAL_ID_LENGTH = 5

# Fields that apply_update accepts, in the order they are reported
UPDATABLE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "address",
    "national_id",
    "blood_type",
    "allergies",
    "medical_conditions",
    "notes",
)

_CONTACT_FIELDS = {
    "email": ContactType.EMAIL,
    "phone_number": ContactType.PHONE,
    "address": ContactType.ADDRESS,
}


@dataclass
class Student:
    """Student aggregate representing one enrolled student in a tenant.

    Business rules:
    - Names are 2-50 characters
    - Students are 3-25 years old at enrollment
    - There is at least one guardian and exactly one primary contact
    - Enrollment is not in the future and graduation comes after it
    - Graduated students cannot be suspended, transferred or reactivated
    - Only active students can graduate

    Versioning:
    - A new student has version 1, which is what the first save stores
    - Each later save advances the version by one (compare-and-swap)
    - Events carry the version the student will have once persisted

    Event collection:
    - All mutating operations record domain events
    - Events can be collected via collect_events() for the outbox pattern
    """

    id: StudentId
    tenant_id: str
    student_number: StudentNumber
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    address: Address
    guardians: list[GuardianInfo]
    status: StudentStatus
    enrollment_date: date
    email: Email | None = None
    phone_number: PhoneNumber | None = None
    graduation_date: date | None = None
    national_id: str | None = None
    blood_type: str | None = None
    allergies: list[str] = field(default_factory=list)
    medical_conditions: list[str] = field(default_factory=list)
    notes: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    deleted_at: datetime | None = None
    _persisted: bool = field(default=False, repr=False)
    _pending_events: list[DomainEvent] = field(default_factory=list, repr=False)

    @classmethod
    def create(
        cls,
        *,
        tenant_id: str,
        student_number: StudentNumber,
        first_name: str,
        last_name: str,
        date_of_birth: date,
        gender: Gender,
        address: Address,
        guardians: list[GuardianInfo],
        enrollment_date: date,
        email: Email | None = None,
        phone_number: PhoneNumber | None = None,
        national_id: str | None = None,
        blood_type: str | None = None,
        allergies: list[str] | None = None,
        medical_conditions: list[str] | None = None,
        notes: str | None = None,
        created_by: str | None = None,
        today: date | None = None,
    ) -> Student:
        """Factory method for enrolling a new student.

        Generates the ID, validates every invariant including the age
        range, and records the StudentEnrolled event.

        Args:
            tenant_id: Owning tenant
            student_number: Tenant-unique student number
            first_name: Student first name
            last_name: Student last name
            date_of_birth: Date of birth
            gender: Recorded gender
            address: Home address
            guardians: At least one guardian, exactly one primary contact
            enrollment_date: First day of enrollment
            email: Optional student email
            phone_number: Optional student phone
            national_id: Optional government id (5+ characters)
            blood_type: Optional blood type
            allergies: Known allergies
            medical_conditions: Known medical conditions
            notes: Free-form notes
            created_by: Actor performing the enrollment
            today: Reference date for age checks (defaults to today)

        Returns:
            A new Student aggregate with StudentEnrolled recorded

        Raises:
            StudentValidationError: If any invariant is violated
        """
        student = cls(
            id=StudentId.generate(),
            tenant_id=tenant_id,
            student_number=student_number,
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            gender=gender,
            address=address,
            guardians=list(guardians),
            status=StudentStatus.ACTIVE,
            enrollment_date=enrollment_date,
            email=email,
            phone_number=phone_number,
            national_id=national_id,
            blood_type=blood_type,
            allergies=list(allergies or []),
            medical_conditions=list(medical_conditions or []),
            notes=notes,
            created_by=created_by,
            updated_by=created_by,
        )
        student._validate(today=today or date.today(), check_age=True)

        student._pending_events.append(
            StudentEnrolled(
                student_id=student.id.value,
                tenant_id=tenant_id,
                version=student.next_version,
                student_number=student_number.value,
                first_name=first_name,
                last_name=last_name,
                date_of_birth=date_of_birth,
                gender=gender.value,
                enrollment_date=enrollment_date,
                primary_guardian=student._primary_guardian_snapshot(),
                address=address,
                occurred_at=datetime.now(UTC),
            )
        )
        return student

    @classmethod
    def reconstitute(cls, **fields: Any) -> Student:
        """Rebuild a stored student without recording events.

        The age range is only enforced at enrollment, since stored
        students keep getting older.
        """
        student = cls(**fields, _persisted=True)
        student._validate(today=date.today(), check_age=False)
        return student

    # Derived state

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self) -> int:
        return calculate_age(self.date_of_birth, date.today())

    @property
    def primary_guardian(self) -> GuardianInfo:
        return next(g for g in self.guardians if g.is_primary_contact)

    @property
    def emergency_contacts(self) -> list[GuardianInfo]:
        return [g for g in self.guardians if g.is_emergency_contact]

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE

    @property
    def is_graduated(self) -> bool:
        return self.status == StudentStatus.GRADUATED

    @property
    def is_new(self) -> bool:
        """True until the first successful save."""
        return not self._persisted

    @property
    def next_version(self) -> int:
        """The version this student will have after its next save."""
        return self.version + 1 if self._persisted else self.version

    # Mutations

    def apply_update(
        self, changes: Mapping[str, Any], updated_by: str | None = None
    ) -> list[str]:
        """Apply field changes and record the resulting events.

        Only fields whose value actually differs are changed and reported.
        A single StudentUpdated event lists them, and each changed contact
        detail also records a StudentContactUpdated event.

        Args:
            changes: New values keyed by field name (see UPDATABLE_FIELDS)
            updated_by: Actor performing the update

        Returns:
            Names of the fields that changed, in UPDATABLE_FIELDS order

        Raises:
            StudentValidationError: If a field is unknown or the result
                violates an invariant
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            field_name = sorted(unknown)[0]
            raise StudentValidationError(
                field_name, changes[field_name], "Field cannot be updated"
            )

        changed = [
            name
            for name in UPDATABLE_FIELDS
            if name in changes and getattr(self, name) != changes[name]
        ]
        if not changed:
            return []

        previous = {name: getattr(self, name) for name in changed}
        for name in changed:
            value = changes[name]
            if name in ("allergies", "medical_conditions"):
                value = list(value or [])
            setattr(self, name, value)

        try:
            self._validate(today=date.today(), check_age=False)
        except StudentValidationError:
            for name, value in previous.items():
                setattr(self, name, value)
            raise

        if updated_by is not None:
            self.updated_by = updated_by
        self._record_update(changed)
        for name in changed:
            if name in _CONTACT_FIELDS:
                self._record_contact_update(_CONTACT_FIELDS[name])
        return changed

    def update_personal_info(
        self,
        first_name: str,
        last_name: str,
        email: Email | None = None,
        phone_number: PhoneNumber | None = None,
        updated_by: str | None = None,
    ) -> list[str]:
        """Replace name and personal contact details."""
        return self.apply_update(
            {
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "phone_number": phone_number,
            },
            updated_by=updated_by,
        )

    def update_address(self, address: Address, updated_by: str | None = None) -> list[str]:
        """Replace the home address."""
        return self.apply_update({"address": address}, updated_by=updated_by)

    def update_medical_info(
        self,
        blood_type: str | None = None,
        allergies: list[str] | None = None,
        medical_conditions: list[str] | None = None,
        updated_by: str | None = None,
    ) -> list[str]:
        """Replace medical details."""
        return self.apply_update(
            {
                "blood_type": blood_type,
                "allergies": allergies or [],
                "medical_conditions": medical_conditions or [],
            },
            updated_by=updated_by,
        )

    def add_guardian(self, guardian: GuardianInfo, updated_by: str | None = None) -> None:
        """Add a guardian. A new primary contact demotes the existing one."""
        if guardian.is_primary_contact:
            guardians = [g.as_secondary() for g in self.guardians]
        else:
            guardians = list(self.guardians)
        guardians.append(guardian)

        previous = self.guardians
        self.guardians = guardians
        try:
            self._validate(today=date.today(), check_age=False)
        except StudentValidationError:
            self.guardians = previous
            raise

        if updated_by is not None:
            self.updated_by = updated_by
        self._record_update(["guardians"])
        self._record_contact_update(ContactType.GUARDIAN)

    def remove_guardian(self, guardian_email: Email, updated_by: str | None = None) -> None:
        """Remove the guardian with ``guardian_email``.

        Raises:
            StudentValidationError: If no guardian has that email, if it is
                the only guardian, or if the removal leaves no primary contact
        """
        match = [g for g in self.guardians if g.email == guardian_email]
        if not match:
            raise StudentValidationError(
                "guardian", guardian_email.value, "Guardian not found"
            )
        if len(self.guardians) == 1:
            raise StudentValidationError(
                "guardian", guardian_email.value, "Cannot remove the only guardian"
            )

        previous = self.guardians
        self.guardians = [g for g in self.guardians if g.email != guardian_email]
        try:
            self._validate(today=date.today(), check_age=False)
        except StudentValidationError:
            self.guardians = previous
            raise

        if updated_by is not None:
            self.updated_by = updated_by
        self._record_update(["guardians"])
        self._record_contact_update(ContactType.GUARDIAN)

    def add_note(self, note: str, updated_by: str | None = None) -> None:
        """Append a timestamped note."""
        entry = f"[{datetime.now(UTC).isoformat()}] {note}"
        self._append_note(entry)
        if updated_by is not None:
            self.updated_by = updated_by
        self._record_update(["notes"])

    def suspend(self, reason: str, updated_by: str | None = None) -> None:
        """Suspend the student, noting the reason."""
        if self.is_graduated:
            raise StudentValidationError(
                "status", self.status.value, "Cannot suspend a graduated student"
            )
        self.status = StudentStatus.SUSPENDED
        self._append_note(f"Suspended: {reason}")
        if updated_by is not None:
            self.updated_by = updated_by
        self._pending_events.append(
            StudentSuspended(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                full_name=self.full_name,
                reason=reason,
                primary_guardian=self._primary_guardian_snapshot(),
                occurred_at=datetime.now(UTC),
            )
        )

    def transfer(self, reason: str, updated_by: str | None = None) -> None:
        """Mark the student as transferred, noting the reason."""
        if self.is_graduated:
            raise StudentValidationError(
                "status", self.status.value, "Cannot transfer a graduated student"
            )
        self.status = StudentStatus.TRANSFERRED
        self._append_note(f"Transferred: {reason}")
        if updated_by is not None:
            self.updated_by = updated_by
        self._pending_events.append(
            StudentTransferred(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                full_name=self.full_name,
                enrollment_date=self.enrollment_date,
                reason=reason,
                primary_guardian=self._primary_guardian_snapshot(),
                occurred_at=datetime.now(UTC),
            )
        )

    def reactivate(self, updated_by: str | None = None) -> None:
        """Return the student to active status."""
        if self.is_graduated:
            raise StudentValidationError(
                "status", self.status.value, "Cannot reactivate a graduated student"
            )
        previous_status = self.status
        self.status = StudentStatus.ACTIVE
        if updated_by is not None:
            self.updated_by = updated_by
        self._pending_events.append(
            StudentReactivated(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                full_name=self.full_name,
                previous_status=previous_status,
                occurred_at=datetime.now(UTC),
            )
        )

    def graduate(self, graduation_date: date, updated_by: str | None = None) -> None:
        """Graduate an active student.

        Raises:
            StudentValidationError: If the student is not active or the date
                is not after enrollment
        """
        if self.status != StudentStatus.ACTIVE:
            raise StudentValidationError(
                "status", self.status.value, "Only active students can graduate"
            )
        if graduation_date <= self.enrollment_date:
            raise StudentValidationError(
                "graduation_date",
                graduation_date,
                "Graduation date must be after enrollment date",
            )

        self.status = StudentStatus.GRADUATED
        self.graduation_date = graduation_date
        if updated_by is not None:
            self.updated_by = updated_by
        self._pending_events.append(
            StudentGraduated(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                full_name=self.full_name,
                enrollment_date=self.enrollment_date,
                graduation_date=graduation_date,
                years_enrolled=(graduation_date - self.enrollment_date).days // 365,
                primary_guardian=self._primary_guardian_snapshot(),
                occurred_at=datetime.now(UTC),
            )
        )

    def mark_for_deletion(self, deleted_by: str | None = None) -> None:
        """Soft-delete the student and record StudentDeleted."""
        now = datetime.now(UTC)
        self.deleted_at = now
        if deleted_by is not None:
            self.updated_by = deleted_by
        self._pending_events.append(
            StudentDeleted(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                full_name=self.full_name,
                deleted_by=deleted_by,
                occurred_at=now,
            )
        )

    def mark_persisted(self) -> None:
        """Advance the version after a successful compare-and-swap save."""
        if self._persisted:
            self.version += 1
        else:
            self._persisted = True

    def collect_events(self) -> list[DomainEvent]:
        """Return and clear pending domain events.

        Returns:
            List of pending domain events
        """
        events = self._pending_events.copy()
        self._pending_events.clear()
        return events

    # Internals

    def _validate(self, today: date, check_age: bool) -> None:
        validate_person_name("first_name", self.first_name, "First name")
        validate_person_name("last_name", self.last_name, "Last name")

        if self.date_of_birth > today:
            raise StudentValidationError(
                "date_of_birth",
                self.date_of_birth,
                "Date of birth cannot be in the future",
            )
        if check_age:
            age = calculate_age(self.date_of_birth, today)
            if not MIN_STUDENT_AGE <= age <= MAX_STUDENT_AGE:
                raise StudentValidationError(
                    "date_of_birth",
                    self.date_of_birth,
                    f"Student age must be between {MIN_STUDENT_AGE} and {MAX_STUDENT_AGE} years",
                )

        if not self.guardians:
            raise StudentValidationError(
                "guardians", self.guardians, "At least one guardian is required"
            )
        if sum(1 for g in self.guardians if g.is_primary_contact) != 1:
            raise StudentValidationError(
                "guardians",
                self.guardians,
                "Exactly one guardian must be designated as primary contact",
            )

        if self.enrollment_date > today:
            raise StudentValidationError(
                "enrollment_date",
                self.enrollment_date,
                "Enrollment date cannot be in the future",
            )
        if self.graduation_date is not None and self.graduation_date <= self.enrollment_date:
            raise StudentValidationError(
                "graduation_date",
                self.graduation_date,
                "Graduation date must be after enrollment date",
            )

        if self.national_id and len(self.national_id) < MIN_NATIONAL_ID_LENGTH:
            raise StudentValidationError(
                "national_id",
                self.national_id,
                f"National ID must be at least {MIN_NATIONAL_ID_LENGTH} characters",
            )

    def _append_note(self, entry: str) -> None:
        self.notes = f"{self.notes}\n{entry}" if self.notes else entry

    def _primary_guardian_snapshot(self) -> GuardianSnapshot:
        guardian = self.primary_guardian
        return GuardianSnapshot(
            full_name=guardian.full_name,
            email=guardian.email.value,
            phone_number=guardian.phone_number.value,
            relationship=guardian.relationship.value,
        )

    def _record_update(self, changed: list[str]) -> None:
        self._pending_events.append(
            StudentUpdated(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                full_name=self.full_name,
                updated_fields=tuple(changed),
                current_status=self.status,
                occurred_at=datetime.now(UTC),
            )
        )

    def _record_contact_update(self, contact_type: ContactType) -> None:
        self._pending_events.append(
            StudentContactUpdated(
                student_id=self.id.value,
                tenant_id=self.tenant_id,
                version=self.next_version,
                student_number=self.student_number.value,
                contact_type=contact_type,
                occurred_at=datetime.now(UTC),
            )
        )
