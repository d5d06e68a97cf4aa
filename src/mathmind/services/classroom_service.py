"""
Classroom Service for MathMind.

Topics, students, classes and enrollment. Class membership determines which
students appear in the per-student mistake breakdown.
"""

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmind.models import (
    ClassEnrollmentModel,
    Classroom,
    ClassroomCreate,
    ClassroomModel,
    Student,
    StudentCreate,
    StudentModel,
    Topic,
    TopicCreate,
    TopicModel,
)
from mathmind.services.errors import AlreadyEnrolledError, ClassNotFoundError, DuplicateError
from mathmind.utils.ids import (
    PREFIX_CLASS,
    PREFIX_STUDENT,
    PREFIX_TOPIC,
    generate_entity_id,
    generate_invite_code,
)

# ============================================================================
# Topics
# ============================================================================


async def create_topic(session: AsyncSession, data: TopicCreate) -> Topic:
    """
    Create a topic that tasks can belong to.

    Raises:
        DuplicateError: If a topic with the same ID already exists
    """
    if data.id is not None and await session.get(TopicModel, data.id) is not None:
        raise DuplicateError(f"Topic {data.id} already exists")

    topic = TopicModel(
        id=data.id or generate_entity_id(PREFIX_TOPIC),
        title=data.title,
        description=data.description,
    )
    session.add(topic)
    await _commit_new(session, f"Topic {topic.id}")
    await session.refresh(topic)
    return Topic.model_validate(topic)


async def list_topics(session: AsyncSession) -> list[Topic]:
    """List all topics by ID."""
    result = await session.execute(select(TopicModel).order_by(TopicModel.id))
    return [Topic.model_validate(t) for t in result.scalars().all()]


# ============================================================================
# Students and Classes
# ============================================================================


async def create_student(session: AsyncSession, data: StudentCreate) -> Student:
    """
    Register a student.

    Raises:
        DuplicateError: If a student with the same ID already exists
    """
    if data.id is not None and await session.get(StudentModel, data.id) is not None:
        raise DuplicateError(f"Student {data.id} already exists")

    student = StudentModel(id=data.id or generate_entity_id(PREFIX_STUDENT), name=data.name)
    session.add(student)
    await _commit_new(session, f"Student {student.id}")
    await session.refresh(student)
    return Student.model_validate(student)


async def create_class(session: AsyncSession, data: ClassroomCreate) -> Classroom:
    """
    Create a class.

    A CLS-XXXXXX invite code is generated unless one is given. Codes are stored
    upper-case.

    Raises:
        DuplicateError: If the invite code is already in use
    """
    classroom = ClassroomModel(
        id=generate_entity_id(PREFIX_CLASS),
        name=data.name.strip(),
        invite_code=(data.invite_code or generate_invite_code()).upper(),
        teacher_id=data.teacher_id,
    )
    session.add(classroom)
    await _commit_new(session, f"Class with invite code {classroom.invite_code}")
    await session.refresh(classroom)
    return Classroom.model_validate(classroom)


async def get_class(session: AsyncSession, class_id: str) -> Classroom:
    """
    Get a class by ID.

    Raises:
        ClassNotFoundError: If the class does not exist
    """
    classroom = await session.get(ClassroomModel, class_id)
    if classroom is None:
        raise ClassNotFoundError(f"Class {class_id} does not exist")
    return Classroom.model_validate(classroom)


async def join_class(session: AsyncSession, student_id: str, invite_code: str) -> Classroom:
    """
    Enroll a student in the class owning invite_code.

    Args:
        session: Database session
        student_id: Student joining
        invite_code: Code shared by the teacher, matched case-insensitively

    Returns:
        The joined class

    Raises:
        ClassNotFoundError: If no class uses the code
        AlreadyEnrolledError: If the student is already in the class
    """
    result = await session.execute(
        select(ClassroomModel).where(
            func.upper(ClassroomModel.invite_code) == invite_code.strip().upper()
        )
    )
    classroom = result.scalar_one_or_none()
    if classroom is None:
        raise ClassNotFoundError(f"No class uses invite code {invite_code!r}")

    if await is_student_in_class(session, student_id, classroom.id):
        raise AlreadyEnrolledError(f"Student {student_id} is already in class {classroom.id}")

    joined = Classroom.model_validate(classroom)
    session.add(ClassEnrollmentModel(class_id=classroom.id, student_id=student_id))
    await session.commit()
    return joined


async def is_student_in_class(session: AsyncSession, student_id: str, class_id: str) -> bool:
    """Check class membership."""
    enrollment = await session.get(ClassEnrollmentModel, (class_id, student_id))
    return enrollment is not None


async def list_student_classes(session: AsyncSession, student_id: str) -> list[Classroom]:
    """Classes a student belongs to, by ID."""
    result = await session.execute(
        select(ClassroomModel)
        .join(ClassEnrollmentModel, ClassEnrollmentModel.class_id == ClassroomModel.id)
        .where(ClassEnrollmentModel.student_id == student_id)
        .order_by(ClassroomModel.id)
    )
    return [Classroom.model_validate(c) for c in result.scalars().all()]


async def list_teacher_classes(session: AsyncSession, teacher_id: str) -> list[Classroom]:
    """Classes run by a teacher, by ID."""
    result = await session.execute(
        select(ClassroomModel)
        .where(ClassroomModel.teacher_id == teacher_id)
        .order_by(ClassroomModel.id)
    )
    return [Classroom.model_validate(c) for c in result.scalars().all()]


async def list_class_students(session: AsyncSession, class_id: str) -> list[Student]:
    """Students enrolled in a class, by ID."""
    result = await session.execute(
        select(StudentModel)
        .join(ClassEnrollmentModel, ClassEnrollmentModel.student_id == StudentModel.id)
        .where(ClassEnrollmentModel.class_id == class_id)
        .order_by(StudentModel.id)
    )
    return [Student.model_validate(s) for s in result.scalars().all()]


async def _commit_new(session: AsyncSession, label: str) -> None:
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise DuplicateError(f"{label} already exists") from e
