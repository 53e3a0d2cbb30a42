"""SQL implementation of IStudentRepository.

This repository manages student rows and writes each aggregate's domain
events to the outbox in the same session, so a student change and the
events describing it commit or roll back together.

Updates and soft deletes use compare-and-swap on the version column: the
write only applies when the stored version is the one the aggregate was
loaded with.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, Select, exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import as_utc
from students.domain.aggregates import Student
from students.domain.value_objects import (
    Address,
    Email,
    Gender,
    GuardianInfo,
    GuardianRelationship,
    PhoneNumber,
    StudentId,
    StudentNumber,
    StudentStatus,
)
from students.infrastructure.models import StudentModel
from students.infrastructure.observability import (
    DefaultStudentRepositoryProbe,
    StudentRepositoryProbe,
)
from students.infrastructure.outbox import StudentEventSerializer
from students.ports.exceptions import (
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
)
from students.ports.repositories import (
    IStudentRepository,
    SortOrder,
    StudentSearchCriteria,
    StudentSortField,
)

if TYPE_CHECKING:
    from infrastructure.outbox.repository import OutboxEventRepository


def status_to_column(status: StudentStatus) -> str:
    match status:
        case StudentStatus.ACTIVE:
            return "ACTIVE"
        case StudentStatus.INACTIVE:
            return "INACTIVE"
        case StudentStatus.GRADUATED:
            return "GRADUATED"
        case StudentStatus.TRANSFERRED:
            return "TRANSFERRED"
        case StudentStatus.SUSPENDED:
            return "SUSPENDED"
        case StudentStatus.EXPELLED:
            return "EXPELLED"


def status_from_column(value: str) -> StudentStatus:
    """Map a stored status back to the enum.

    Raises:
        ValueError: If the column holds an unknown status
    """
    match value:
        case "ACTIVE":
            return StudentStatus.ACTIVE
        case "INACTIVE":
            return StudentStatus.INACTIVE
        case "GRADUATED":
            return StudentStatus.GRADUATED
        case "TRANSFERRED":
            return StudentStatus.TRANSFERRED
        case "SUSPENDED":
            return StudentStatus.SUSPENDED
        case "EXPELLED":
            return StudentStatus.EXPELLED
        case _:
            raise ValueError(f"Unknown student status in storage: {value!r}")


def gender_to_column(gender: Gender) -> str:
    match gender:
        case Gender.MALE:
            return "MALE"
        case Gender.FEMALE:
            return "FEMALE"
        case Gender.OTHER:
            return "OTHER"


def gender_from_column(value: str) -> Gender:
    """Map a stored gender back to the enum.

    Raises:
        ValueError: If the column holds an unknown gender
    """
    match value:
        case "MALE":
            return Gender.MALE
        case "FEMALE":
            return Gender.FEMALE
        case "OTHER":
            return Gender.OTHER
        case _:
            raise ValueError(f"Unknown gender in storage: {value!r}")


def _address_to_json(address: Address) -> dict[str, str]:
    return {
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
        "country": address.country,
    }


def _guardian_to_json(guardian: GuardianInfo) -> dict[str, Any]:
    return {
        "first_name": guardian.first_name,
        "last_name": guardian.last_name,
        "relationship": guardian.relationship.value,
        "email": guardian.email.value,
        "phone_number": guardian.phone_number.value,
        "is_emergency_contact": guardian.is_emergency_contact,
        "is_primary_contact": guardian.is_primary_contact,
        "address": (
            _address_to_json(guardian.address) if guardian.address is not None else None
        ),
    }


def _guardian_from_json(data: dict[str, Any]) -> GuardianInfo:
    address = data.get("address")
    return GuardianInfo(
        first_name=data["first_name"],
        last_name=data["last_name"],
        relationship=GuardianRelationship.parse(data["relationship"]),
        email=Email(data["email"]),
        phone_number=PhoneNumber(data["phone_number"]),
        is_emergency_contact=data["is_emergency_contact"],
        is_primary_contact=data["is_primary_contact"],
        address=Address(**address) if address else None,
    )


def _years_before(on: date, years: int) -> date:
    """The same calendar day ``years`` earlier (Feb 29 falls back to Feb 28)."""
    try:
        return on.replace(year=on.year - years)
    except ValueError:
        return on.replace(year=on.year - years, day=28)


class StudentRepository(IStudentRepository):
    """Repository managing SQL storage for Student aggregates.

    Write operations use the transactional outbox pattern:
    - Domain events are collected from the aggregate
    - Events are appended to the outbox table (same transaction as the row)
    - The outbox publisher delivers them after commit
    """

    def __init__(
        self,
        session: AsyncSession,
        outbox: "OutboxEventRepository",
        probe: StudentRepositoryProbe | None = None,
        serializer: StudentEventSerializer | None = None,
    ) -> None:
        """Initialize repository with database session and outbox.

        Args:
            session: AsyncSession from FastAPI dependency injection
            outbox: Outbox repository sharing the same session
            probe: Optional domain probe for observability
            serializer: Optional event serializer for testability
        """
        self._session = session
        self._outbox = outbox
        self._probe = probe or DefaultStudentRepositoryProbe()
        self._serializer = serializer or StudentEventSerializer()

    async def save(self, student: Student) -> None:
        """Insert or compare-and-swap update a student, events to outbox.

        Args:
            student: The Student aggregate to persist

        Raises:
            DuplicateStudentError: If the student number is taken in the tenant
            ConcurrencyError: If the stored version differs
            StudentNotFoundError: If the stored row is gone
        """
        now = datetime.now(UTC)
        if student.is_new:
            await self._insert(student, now)
        else:
            await self._compare_and_swap(student, self._row_values(student), now)

        event_count = await self._append_events(student)
        student.mark_persisted()
        student.updated_at = now
        self._probe.student_saved(
            student.id.value, student.tenant_id, student.version, event_count
        )

    async def delete(self, student: Student) -> None:
        """Soft-delete a student with the same compare-and-swap guard as save.

        Args:
            student: The Student aggregate (mark_for_deletion() already called)

        Raises:
            ConcurrencyError: If the stored version differs
            StudentNotFoundError: If the stored row is gone
        """
        now = datetime.now(UTC)
        await self._compare_and_swap(
            student,
            {
                "deleted_at": student.deleted_at or now,
                "updated_by": student.updated_by,
            },
            now,
        )
        await self._append_events(student)
        student.mark_persisted()
        student.updated_at = now
        self._probe.student_deleted(student.id.value, student.tenant_id)

    async def get_by_id(self, student_id: str, tenant_id: str) -> Student | None:
        """Fetch a live student by ULID or student number.

        Args:
            student_id: The student's ULID, or a student number
            tenant_id: The owning tenant

        Returns:
            The Student aggregate, or None if not found or deleted
        """
        if StudentNumber.is_valid(student_id):
            return await self.find_by_student_number(student_id, tenant_id)

        stmt = self._live(tenant_id).where(StudentModel.id == student_id)
        student = await self._fetch_one(stmt)
        if student is None:
            self._probe.student_not_found(student_id, tenant_id)
        return student

    async def find_by_student_number(
        self, student_number: str, tenant_id: str
    ) -> Student | None:
        stmt = self._live(tenant_id).where(
            StudentModel.student_number == student_number
        )
        student = await self._fetch_one(stmt)
        if student is None:
            self._probe.student_not_found(student_number, tenant_id)
        return student

    async def find_by_email(self, email: str, tenant_id: str) -> Student | None:
        stmt = self._live(tenant_id).where(
            StudentModel.email == email.strip().lower()
        )
        return await self._fetch_one(stmt)

    async def find_by_national_id(
        self, national_id: str, tenant_id: str
    ) -> Student | None:
        stmt = self._live(tenant_id).where(StudentModel.national_id == national_id)
        return await self._fetch_one(stmt)

    async def list_by_status(
        self, status: StudentStatus, tenant_id: str
    ) -> list[Student]:
        stmt = (
            self._live(tenant_id)
            .where(StudentModel.status == status_to_column(status))
            .order_by(StudentModel.last_name, StudentModel.first_name)
        )
        result = await self._session.execute(stmt)
        return [self._to_aggregate(model) for model in result.scalars().all()]

    async def search(
        self,
        criteria: StudentSearchCriteria,
        tenant_id: str,
        limit: int,
        offset: int,
    ) -> tuple[list[Student], int]:
        """Search live students in a tenant.

        Args:
            criteria: Filters and ordering
            tenant_id: The tenant to search within
            limit: Maximum students to return
            offset: Number of matching students to skip

        Returns:
            The page of students and the total number of matches
        """
        conditions = self._search_conditions(criteria, tenant_id)

        count_stmt = select(func.count()).select_from(StudentModel).where(*conditions)
        total = (await self._session.execute(count_stmt)).scalar_one()

        sort_column = self._sort_column(criteria.sort_by)
        ordering = sort_column.desc() if criteria.sort_order == SortOrder.DESC else sort_column.asc()
        stmt = (
            select(StudentModel)
            .where(*conditions)
            .order_by(ordering, StudentModel.id)
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        students = [self._to_aggregate(model) for model in result.scalars().all()]
        return students, total

    async def count(self, tenant_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(StudentModel)
            .where(StudentModel.tenant_id == tenant_id)
            .where(StudentModel.deleted_at.is_(None))
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def is_student_number_unique(
        self, student_number: str, tenant_id: str, exclude_id: str | None = None
    ) -> bool:
        # Deleted students keep their number, so they are included here
        conditions = [
            StudentModel.tenant_id == tenant_id,
            StudentModel.student_number == student_number,
        ]
        return not await self._exists(conditions, exclude_id)

    async def is_email_unique(
        self, email: str, tenant_id: str, exclude_id: str | None = None
    ) -> bool:
        conditions = [
            StudentModel.tenant_id == tenant_id,
            StudentModel.email == email.strip().lower(),
            StudentModel.deleted_at.is_(None),
        ]
        return not await self._exists(conditions, exclude_id)

    async def is_national_id_unique(
        self, national_id: str, tenant_id: str, exclude_id: str | None = None
    ) -> bool:
        conditions = [
            StudentModel.tenant_id == tenant_id,
            StudentModel.national_id == national_id,
            StudentModel.deleted_at.is_(None),
        ]
        return not await self._exists(conditions, exclude_id)

    async def _insert(self, student: Student, now: datetime) -> None:
        model = StudentModel(
            id=student.id.value,
            tenant_id=student.tenant_id,
            version=1,
            created_by=student.created_by,
            created_at=now,
            updated_at=now,
            **self._row_values(student),
        )
        self._session.add(model)
        try:
            # Flush to catch integrity errors before outbox writes
            await self._session.flush()
        except IntegrityError as e:
            if "student_number" in str(e):
                self._probe.duplicate_student_number(
                    student.student_number.value, student.tenant_id
                )
                raise DuplicateStudentError(
                    "student_number", student.student_number.value, student.tenant_id
                ) from e
            raise
        student.created_at = now

    async def _compare_and_swap(
        self, student: Student, values: dict[str, Any], now: datetime
    ) -> None:
        stmt = (
            update(StudentModel)
            .where(StudentModel.id == student.id.value)
            .where(StudentModel.tenant_id == student.tenant_id)
            .where(StudentModel.version == student.version)
            .where(StudentModel.deleted_at.is_(None))
            .values(**values, version=StudentModel.version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount > 0:
            return

        actual_stmt = (
            select(StudentModel.version)
            .where(StudentModel.id == student.id.value)
            .where(StudentModel.tenant_id == student.tenant_id)
            .where(StudentModel.deleted_at.is_(None))
        )
        actual = (await self._session.execute(actual_stmt)).scalar_one_or_none()
        if actual is None:
            self._probe.student_not_found(student.id.value, student.tenant_id)
            raise StudentNotFoundError(student.id.value, student.tenant_id)

        self._probe.version_conflict(student.id.value, student.version, actual)
        raise ConcurrencyError("Student", student.id.value, student.version, actual)

    async def _append_events(self, student: Student) -> int:
        events = student.collect_events()
        for event in events:
            await self._outbox.append(self._serializer.to_envelope(event))
        return len(events)

    async def _exists(
        self, conditions: list[ColumnElement[bool]], exclude_id: str | None
    ) -> bool:
        if exclude_id is not None:
            conditions = [*conditions, StudentModel.id != exclude_id]
        stmt = select(exists().where(*conditions))
        return bool((await self._session.execute(stmt)).scalar())

    async def _fetch_one(self, stmt: Select[tuple[StudentModel]]) -> Student | None:
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return self._to_aggregate(model)

    @staticmethod
    def _live(tenant_id: str) -> Select[tuple[StudentModel]]:
        return (
            select(StudentModel)
            .where(StudentModel.tenant_id == tenant_id)
            .where(StudentModel.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )

    @staticmethod
    def _search_conditions(
        criteria: StudentSearchCriteria, tenant_id: str
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [
            StudentModel.tenant_id == tenant_id,
            StudentModel.deleted_at.is_(None),
        ]
        if criteria.first_name:
            conditions.append(
                StudentModel.first_name.icontains(criteria.first_name, autoescape=True)
            )
        if criteria.last_name:
            conditions.append(
                StudentModel.last_name.icontains(criteria.last_name, autoescape=True)
            )
        if criteria.status is not None:
            conditions.append(StudentModel.status == status_to_column(criteria.status))
        if criteria.enrollment_year is not None:
            conditions.append(
                StudentModel.enrollment_date >= date(criteria.enrollment_year, 1, 1)
            )
            conditions.append(
                StudentModel.enrollment_date < date(criteria.enrollment_year + 1, 1, 1)
            )
        if criteria.graduation_year is not None:
            conditions.append(
                StudentModel.graduation_date >= date(criteria.graduation_year, 1, 1)
            )
            conditions.append(
                StudentModel.graduation_date < date(criteria.graduation_year + 1, 1, 1)
            )

        today = date.today()
        if criteria.min_age is not None:
            conditions.append(
                StudentModel.date_of_birth <= _years_before(today, criteria.min_age)
            )
        if criteria.max_age is not None:
            conditions.append(
                StudentModel.date_of_birth > _years_before(today, criteria.max_age + 1)
            )

        if criteria.has_allergies is not None:
            allergy_count = func.json_array_length(StudentModel.allergies)
            conditions.append(
                allergy_count > 0 if criteria.has_allergies else allergy_count == 0
            )
        if criteria.has_medical_conditions is not None:
            condition_count = func.json_array_length(StudentModel.medical_conditions)
            conditions.append(
                condition_count > 0
                if criteria.has_medical_conditions
                else condition_count == 0
            )
        return conditions

    @staticmethod
    def _sort_column(sort_by: StudentSortField) -> Any:
        match sort_by:
            case StudentSortField.LAST_NAME:
                return StudentModel.last_name
            case StudentSortField.FIRST_NAME:
                return StudentModel.first_name
            case StudentSortField.STUDENT_NUMBER:
                return StudentModel.student_number
            case StudentSortField.ENROLLMENT_DATE:
                return StudentModel.enrollment_date
            case StudentSortField.CREATED_AT:
                return StudentModel.created_at

    @staticmethod
    def _row_values(student: Student) -> dict[str, Any]:
        """Column values shared by insert and update."""
        return {
            "student_number": student.student_number.value,
            "first_name": student.first_name,
            "last_name": student.last_name,
            "date_of_birth": student.date_of_birth,
            "gender": gender_to_column(student.gender),
            "email": student.email.value if student.email else None,
            "phone_number": student.phone_number.value if student.phone_number else None,
            "street": student.address.street,
            "city": student.address.city,
            "state": student.address.state,
            "zip_code": student.address.zip_code,
            "country": student.address.country,
            "guardians": [_guardian_to_json(g) for g in student.guardians],
            "enrollment_date": student.enrollment_date,
            "graduation_date": student.graduation_date,
            "status": status_to_column(student.status),
            "national_id": student.national_id,
            "blood_type": student.blood_type,
            "allergies": list(student.allergies),
            "medical_conditions": list(student.medical_conditions),
            "notes": student.notes,
            "updated_by": student.updated_by,
        }

    @staticmethod
    def _to_aggregate(model: StudentModel) -> Student:
        return Student.reconstitute(
            id=StudentId(value=model.id),
            tenant_id=model.tenant_id,
            student_number=StudentNumber(model.student_number),
            first_name=model.first_name,
            last_name=model.last_name,
            date_of_birth=model.date_of_birth,
            gender=gender_from_column(model.gender),
            address=Address(
                street=model.street,
                city=model.city,
                state=model.state,
                zip_code=model.zip_code,
                country=model.country,
            ),
            guardians=[_guardian_from_json(g) for g in model.guardians],
            status=status_from_column(model.status),
            enrollment_date=model.enrollment_date,
            email=Email(model.email) if model.email else None,
            phone_number=PhoneNumber(model.phone_number) if model.phone_number else None,
            graduation_date=model.graduation_date,
            national_id=model.national_id,
            blood_type=model.blood_type,
            allergies=list(model.allergies or []),
            medical_conditions=list(model.medical_conditions or []),
            notes=model.notes,
            version=model.version,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
            created_by=model.created_by,
            updated_by=model.updated_by,
            deleted_at=as_utc(model.deleted_at) if model.deleted_at else None,
        )
