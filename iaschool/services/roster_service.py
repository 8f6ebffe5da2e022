# iaschool/services/roster_service.py
"""Lookups shared by modules that scope data to a user's children or groups."""
from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, BadRequestError
from ..models.tenant_specific.user import User, Group, Student, UserRole
from ..models.tenant_specific.tutor import StudentTutor


class RosterService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: UUID, school_id: UUID, role: UserRole = None) -> Optional[User]:
        stmt = select(User).where(
            User.id == user_id,
            User.school_id == school_id,
            User.is_deleted == False
        )
        if role is not None:
            stmt = stmt.where(User.role == role)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_student(self, student_id: UUID, school_id: UUID) -> Student:
        result = await self.db.execute(
            select(Student).where(
                Student.id == student_id,
                Student.school_id == school_id,
                Student.is_deleted == False
            )
        )
        student = result.scalar_one_or_none()
        if not student:
            raise NotFoundError("Student", student_id)
        return student

    async def get_tutor_links(self, parent_id: UUID, permission: str = None) -> List[StudentTutor]:
        result = await self.db.execute(
            select(StudentTutor).where(
                StudentTutor.tutor_id == parent_id,
                StudentTutor.is_active == True,
                StudentTutor.is_deleted == False
            )
        )
        links = result.scalars().all()
        if permission:
            links = [link for link in links if link.allows(permission)]
        return links

    async def get_children_ids(self, parent_id: UUID, permission: str = None) -> List[UUID]:
        return [link.student_id for link in await self.get_tutor_links(parent_id, permission)]

    async def ensure_child_of(self, parent: User, student_id: UUID, permission: str = None):
        if student_id not in await self.get_children_ids(parent.id, permission):
            raise BadRequestError("Student is not linked to this parent")

    async def get_user_group_ids(self, user: User) -> Set[UUID]:
        """Groups a user belongs to, by role"""
        if user.role == UserRole.PADRE:
            children = await self.get_children_ids(user.id)
            if not children:
                return set()
            result = await self.db.execute(
                select(Student.group_id).where(Student.id.in_(children), Student.group_id.isnot(None))
            )
        elif user.role == UserRole.PROFESOR:
            result = await self.db.execute(
                select(Group.id).where(Group.teacher_id == user.id, Group.is_deleted == False)
            )
        elif user.role == UserRole.ALUMNO:
            result = await self.db.execute(
                select(Student.group_id).where(Student.user_id == user.id, Student.group_id.isnot(None))
            )
        else:
            return set()
        return set(result.scalars().all())

    async def get_group_tutor_ids(self, group_id: UUID) -> Set[UUID]:
        """Distinct active tutors of the active students in a group"""
        result = await self.db.execute(
            select(StudentTutor.tutor_id)
            .join(Student, Student.id == StudentTutor.student_id)
            .where(
                Student.group_id == group_id,
                Student.is_active == True,
                StudentTutor.is_active == True,
                StudentTutor.is_deleted == False
            )
            .distinct()
        )
        return set(result.scalars().all())

    async def count_users_with_role(self, school_id: UUID, role: UserRole) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(User).where(
                User.school_id == school_id,
                User.role == role,
                User.is_active == True,
                User.is_deleted == False
            )
        )
        return result.scalar()
