"""Row builders shared by the test modules."""
from iaschool.core.security import create_access_token, hash_password
from iaschool.models import School, User, Group, Student, StudentTutor, UserRole

DEFAULT_PASSWORD = "Secreto123"
_PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)


async def create_school(db, code="IAS01", name="IA School Norte", **kwargs):
    school = School(code=code, name=name, **kwargs)
    db.add(school)
    await db.commit()
    await db.refresh(school)
    return school


async def create_user(db, school, role=UserRole.PADRE, email=None, name=None, password=None, admin_sub_roles=None, **kwargs):
    user = User(
        school_id=school.id,
        email=email or f"{role.value.lower()}.{school.code.lower()}@iaschool.mx",
        name=name or role.value.title(),
        password_hash=hash_password(password) if password else _PASSWORD_HASH,
        role=role,
        admin_sub_roles=admin_sub_roles or [],
        **kwargs
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_group(db, school, teacher=None, name="1A", **kwargs):
    group = Group(school_id=school.id, name=name, teacher_id=teacher.id if teacher else None, **kwargs)
    db.add(group)
    await db.commit()
    await db.refresh(group)
    return group


async def create_student(db, school, group=None, first_name="Ana", last_name="López", **kwargs):
    student = Student(
        school_id=school.id,
        group_id=group.id if group else None,
        first_name=first_name,
        last_name=last_name,
        **kwargs
    )
    db.add(student)
    await db.commit()
    await db.refresh(student)
    return student


async def link_tutor(db, student, parent, **kwargs):
    link = StudentTutor(school_id=student.school_id, student_id=student.id, tutor_id=parent.id, **kwargs)
    db.add(link)
    await db.commit()
    await db.refresh(link)
    return link


def auth_headers(user) -> dict:
    token, _ = create_access_token(user.id, user.school_id, user.role.value)
    return {"Authorization": f"Bearer {token}"}
