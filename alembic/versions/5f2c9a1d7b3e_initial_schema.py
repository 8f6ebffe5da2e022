"""Initial schema

Revision ID: 5f2c9a1d7b3e
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5f2c9a1d7b3e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)
JSONB = postgresql.JSONB()
TS = sa.DateTime(timezone=True)

user_role = sa.Enum('SUPER_ADMIN', 'ADMIN', 'PROFESOR', 'PADRE', 'ALUMNO', 'VOCAL', name='user_role')
reward_type = sa.Enum('DISCOUNT_PERCENTAGE', 'DISCOUNT_FIXED', 'CREDIT', 'GIFT', name='reward_type')

TABLES = [
    'messages', 'conversation_participants', 'conversations',
    'photo_tags', 'photos', 'albums',
    'campaign_recipients', 'campaigns', 'email_templates', 'crm_segments',
    'event_attendees', 'events', 'appointments',
    'document_signatures', 'documents',
    'store_order_items', 'store_orders', 'cart_items', 'store_products', 'store_categories',
    'student_scholarships', 'scholarships', 'payments', 'charges',
    'enrollments', 'referral_rewards', 'referrals', 'referral_programs',
    'student_tutors', 'students', 'groups', 'users', 'schools',
]

ENUMS = [
    'user_role', 'tutor_relationship', 'referral_status', 'reward_type', 'reward_status',
    'enrollment_status', 'charge_type', 'charge_status', 'payment_method',
    'scholarship_type', 'discount_type', 'scholarship_apply_to', 'student_scholarship_status',
    'product_status', 'order_status', 'document_type', 'document_status',
    'appointment_status', 'event_type', 'attendee_status',
    'campaign_type', 'campaign_status', 'recipient_status',
    'album_visibility', 'conversation_type', 'message_type',
]


def _base_columns(tenant: bool = True):
    columns = [
        sa.Column('id', UUID, primary_key=True),
        sa.Column('created_at', TS, server_default=sa.func.now()),
        sa.Column('updated_at', TS, server_default=sa.func.now()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    ]
    if tenant:
        columns.append(sa.Column('school_id', UUID, sa.ForeignKey('schools.id'), nullable=False))
    return columns


def _base_indexes(table: str, tenant: bool = True):
    for column in ('id', 'created_at', 'is_deleted') + (('school_id',) if tenant else ()):
        op.create_index(f'ix_{table}_{column}', table, [column])


def _ref(name: str, target: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, UUID, sa.ForeignKey(f'{target}.id'), nullable=nullable)


def upgrade() -> None:
    # Tenancy and roster
    op.create_table(
        'schools',
        *_base_columns(tenant=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(20)),
        sa.Column('address', sa.String(500)),
        sa.Column('logo_url', sa.String(500)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('bank_name', sa.String(100)),
        sa.Column('bank_account_holder', sa.String(200)),
        sa.Column('bank_clabe', sa.String(18)),
        sa.Column('bank_reference_prefix', sa.String(6)),
    )
    _base_indexes('schools', tenant=False)
    op.create_index('ix_schools_code', 'schools', ['code'], unique=True)
    op.create_index('idx_school_active', 'schools', ['is_active', 'is_deleted'])

    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20)),
        sa.Column('avatar_url', sa.String(500)),
        sa.Column('role', user_role, nullable=False),
        sa.Column('admin_sub_roles', JSONB, nullable=False, server_default='[]'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('locked_until', TS),
        sa.Column('last_login_at', TS),
    )
    _base_indexes('users')
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('idx_user_school_role', 'users', ['school_id', 'role'])

    op.create_table(
        'groups',
        *_base_columns(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('grade', sa.String(20)),
        sa.Column('section', sa.String(10)),
        sa.Column('academic_year', sa.String(10)),
        _ref('teacher_id', 'users'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    _base_indexes('groups')
    op.create_index('ix_groups_teacher_id', 'groups', ['teacher_id'])

    op.create_table(
        'students',
        *_base_columns(),
        _ref('group_id', 'groups'),
        _ref('user_id', 'users'),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100)),
        sa.Column('enrollment_number', sa.String(30)),
        sa.Column('birth_date', sa.Date()),
        sa.Column('gender', sa.String(20)),
        sa.Column('grade', sa.String(20)),
        sa.Column('photo_url', sa.String(500)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    _base_indexes('students')
    op.create_index('ix_students_group_id', 'students', ['group_id'])
    op.create_index('ix_students_user_id', 'students', ['user_id'])
    op.create_index('ix_students_enrollment_number', 'students', ['enrollment_number'])

    op.create_table(
        'student_tutors',
        *_base_columns(),
        _ref('student_id', 'students', nullable=False),
        _ref('tutor_id', 'users', nullable=False),
        sa.Column('relationship', sa.Enum('PADRE', 'MADRE', 'TUTOR_LEGAL', 'ABUELO', 'OTRO', name='tutor_relationship'), nullable=False),
        sa.Column('relationship_detail', sa.String(100)),
        sa.Column('is_primary_contact', sa.Boolean(), nullable=False, server_default=sa.false()),
        *[
            sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.true())
            for flag in (
                'has_full_access', 'can_view_grades', 'can_view_attendance', 'can_view_payments',
                'can_make_payments', 'can_pickup', 'can_communicate',
                'can_receive_notifications', 'can_request_permissions',
            )
        ],
        sa.Column('custody_type', sa.String(50)),
        sa.Column('custody_notes', sa.Text()),
        _ref('configured_by', 'users'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deactivated_at', TS),
        sa.Column('deactivated_reason', sa.String(500)),
        sa.UniqueConstraint('student_id', 'tutor_id', name='uq_student_tutor'),
    )
    _base_indexes('student_tutors')
    op.create_index('ix_student_tutors_student_id', 'student_tutors', ['student_id'])
    op.create_index('ix_student_tutors_tutor_id', 'student_tutors', ['tutor_id'])

    # Referrals
    op.create_table(
        'referral_programs',
        *_base_columns(),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reward_type', reward_type, nullable=False),
        sa.Column('reward_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('reward_description', sa.String(500)),
        sa.Column('max_rewards_per_year', sa.Integer(), nullable=False),
        sa.Column('requires_active_account', sa.Boolean(), nullable=False),
        sa.Column('requires_min_months', sa.Integer(), nullable=False),
        sa.Column('terms_and_conditions', sa.Text()),
        sa.Column('total_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('successful_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('school_id', name='uq_referral_program_school'),
    )
    _base_indexes('referral_programs')

    op.create_table(
        'referrals',
        *_base_columns(),
        _ref('referrer_id', 'users', nullable=False),
        sa.Column('referred_name', sa.String(200), nullable=False),
        sa.Column('referred_phone', sa.String(30), nullable=False),
        sa.Column('phone_hash', sa.String(64), nullable=False),
        sa.Column('referred_email', sa.String(255)),
        sa.Column('children_count', sa.Integer()),
        sa.Column('children_grades', sa.String(200)),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.Enum(
            'PENDING', 'CONTACTED', 'INTERESTED', 'ENROLLED', 'NOT_INTERESTED',
            'ALREADY_REFERRED', 'INVALID', name='referral_status'
        ), nullable=False),
        sa.Column('status_history', JSONB, nullable=False, server_default='[]'),
        sa.Column('admin_notes', sa.Text()),
        sa.Column('contacted_at', TS),
        sa.Column('enrolled_at', TS),
        sa.UniqueConstraint('school_id', 'phone_hash', name='uq_referral_school_phone'),
    )
    _base_indexes('referrals')
    op.create_index('ix_referrals_referrer_id', 'referrals', ['referrer_id'])
    op.create_index('ix_referrals_status', 'referrals', ['status'])
    op.create_index('idx_referral_school_status', 'referrals', ['school_id', 'status'])

    op.create_table(
        'referral_rewards',
        *_base_columns(),
        sa.Column('referral_id', UUID, sa.ForeignKey('referrals.id'), nullable=False, unique=True),
        _ref('beneficiary_id', 'users', nullable=False),
        sa.Column('reward_type', postgresql.ENUM(name='reward_type', create_type=False), nullable=False),
        sa.Column('reward_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('description', sa.String(500)),
        sa.Column('status', sa.Enum('ACTIVE', 'APPLIED', 'EXPIRED', name='reward_status'), nullable=False),
        sa.Column('expires_at', TS),
        sa.Column('applied_at', TS),
    )
    _base_indexes('referral_rewards')
    op.create_index('ix_referral_rewards_beneficiary_id', 'referral_rewards', ['beneficiary_id'])
    op.create_index('ix_referral_rewards_status', 'referral_rewards', ['status'])

    # Admissions
    op.create_table(
        'enrollments',
        *_base_columns(),
        sa.Column('parent_name', sa.String(200), nullable=False),
        sa.Column('parent_email', sa.String(255), nullable=False),
        sa.Column('parent_phone', sa.String(30), nullable=False),
        sa.Column('relationship', sa.String(30), nullable=False, server_default='padre'),
        sa.Column('student_name', sa.String(200), nullable=False),
        sa.Column('student_birth_date', sa.Date(), nullable=False),
        sa.Column('student_gender', sa.String(20)),
        sa.Column('previous_school', sa.String(200)),
        sa.Column('requested_grade', sa.String(30), nullable=False),
        sa.Column('requested_year', sa.String(10), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.Enum(
            'PENDING', 'REVIEWING', 'DOCUMENTS', 'INTERVIEW', 'ACCEPTED', 'REJECTED',
            'WAITLIST', 'ENROLLED', 'CANCELLED', name='enrollment_status'
        ), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('interview_date', TS),
        sa.Column('interview_notes', sa.Text()),
        sa.Column('rejection_reason', sa.Text()),
        _ref('reviewed_by', 'users'),
        sa.Column('reviewed_at', TS),
        _ref('enrolled_student_id', 'students'),
    )
    _base_indexes('enrollments')
    op.create_index('ix_enrollments_parent_email', 'enrollments', ['parent_email'])
    op.create_index('ix_enrollments_requested_year', 'enrollments', ['requested_year'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])
    op.create_index('idx_enrollment_school_status', 'enrollments', ['school_id', 'status'])
    op.create_index(
        'idx_enrollment_duplicate', 'enrollments',
        ['school_id', 'parent_email', 'student_name', 'requested_year']
    )

    # Payments and scholarships
    op.create_table(
        'charges',
        *_base_columns(),
        _ref('student_id', 'students', nullable=False),
        sa.Column('concept', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('type', sa.Enum(
            'COLEGIATURA', 'INSCRIPCION', 'MATERIAL', 'UNIFORME', 'EVENTO', 'OTRO', name='charge_type'
        ), nullable=False),
        sa.Column('original_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('due_date', TS, nullable=False),
        sa.Column('status', sa.Enum(
            'PENDIENTE', 'PAGADO', 'VENCIDO', 'PARCIAL', 'CANCELADO', name='charge_status'
        ), nullable=False),
        sa.Column('paid_at', TS),
        _ref('created_by', 'users'),
        sa.CheckConstraint('amount >= 0', name='check_charge_amount_non_negative'),
    )
    _base_indexes('charges')
    op.create_index('ix_charges_student_id', 'charges', ['student_id'])
    op.create_index('ix_charges_due_date', 'charges', ['due_date'])
    op.create_index('ix_charges_status', 'charges', ['status'])
    op.create_index('idx_charge_school_status', 'charges', ['school_id', 'status'])

    op.create_table(
        'payments',
        *_base_columns(),
        _ref('charge_id', 'charges', nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('method', sa.Enum(
            'EFECTIVO', 'TRANSFERENCIA', 'TARJETA', 'SPEI', 'OTRO', name='payment_method'
        ), nullable=False),
        sa.Column('reference', sa.String(100)),
        sa.Column('notes', sa.Text()),
        sa.Column('receipt_number', sa.String(30), nullable=False, unique=True),
        _ref('received_by', 'users'),
        sa.Column('paid_at', TS, nullable=False),
        sa.CheckConstraint('amount > 0', name='check_payment_amount_positive'),
    )
    _base_indexes('payments')
    op.create_index('ix_payments_charge_id', 'payments', ['charge_id'])

    op.create_table(
        'scholarships',
        *_base_columns(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('type', sa.Enum(
            'ACADEMICA', 'DEPORTIVA', 'SOCIOECONOMICA', 'HERMANOS', 'EMPLEADO', 'OTRA', name='scholarship_type'
        ), nullable=False),
        sa.Column('discount_type', sa.Enum('PERCENTAGE', 'FIXED', name='discount_type'), nullable=False),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('apply_to', sa.Enum('COLEGIATURA', 'INSCRIPCION', 'TODOS', name='scholarship_apply_to'), nullable=False),
        sa.Column('min_gpa', sa.Numeric(4, 2)),
        sa.Column('requirements', sa.Text()),
        sa.Column('max_beneficiaries', sa.Integer()),
        sa.Column('valid_from', TS),
        sa.Column('valid_until', TS),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    _base_indexes('scholarships')

    op.create_table(
        'student_scholarships',
        *_base_columns(),
        _ref('scholarship_id', 'scholarships', nullable=False),
        _ref('student_id', 'students', nullable=False),
        sa.Column('status', sa.Enum(
            'ACTIVA', 'SUSPENDIDA', 'FINALIZADA', name='student_scholarship_status'
        ), nullable=False),
        _ref('assigned_by', 'users'),
        sa.Column('start_date', TS),
        sa.Column('end_date', TS),
        sa.Column('notes', sa.Text()),
        sa.UniqueConstraint('scholarship_id', 'student_id', name='uq_student_scholarship'),
    )
    _base_indexes('student_scholarships')
    op.create_index('ix_student_scholarships_scholarship_id', 'student_scholarships', ['scholarship_id'])
    op.create_index('ix_student_scholarships_student_id', 'student_scholarships', ['student_id'])

    # Store
    op.create_table(
        'store_categories',
        *_base_columns(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('image_url', sa.String(500)),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    _base_indexes('store_categories')

    op.create_table(
        'store_products',
        *_base_columns(),
        _ref('category_id', 'store_categories', nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('image_url', sa.String(500)),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sizes', JSONB, nullable=False, server_default='[]'),
        sa.Column('colors', JSONB, nullable=False, server_default='[]'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', 'OUT_OF_STOCK', name='product_status'), nullable=False),
        sa.CheckConstraint('stock >= 0', name='check_product_stock_non_negative'),
    )
    _base_indexes('store_products')
    op.create_index('ix_store_products_category_id', 'store_products', ['category_id'])
    op.create_index('ix_store_products_status', 'store_products', ['status'])

    op.create_table(
        'cart_items',
        *_base_columns(),
        _ref('user_id', 'users', nullable=False),
        _ref('product_id', 'store_products', nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('size', sa.String(20)),
        sa.Column('color', sa.String(30)),
    )
    _base_indexes('cart_items')
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    op.create_table(
        'store_orders',
        *_base_columns(),
        sa.Column('order_number', sa.String(20), nullable=False),
        _ref('user_id', 'users', nullable=False),
        _ref('student_id', 'students'),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.Enum(
            'PENDING', 'PAID', 'PROCESSING', 'READY', 'DELIVERED', 'CANCELLED', name='order_status'
        ), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('payment_reference', sa.String(100)),
        sa.Column('paid_at', TS),
        sa.Column('delivery_date', TS),
        sa.Column('delivered_at', TS),
        sa.UniqueConstraint('school_id', 'order_number', name='uq_order_school_number'),
    )
    _base_indexes('store_orders')
    op.create_index('ix_store_orders_order_number', 'store_orders', ['order_number'])
    op.create_index('ix_store_orders_user_id', 'store_orders', ['user_id'])
    op.create_index('ix_store_orders_status', 'store_orders', ['status'])
    op.create_index('idx_order_school_status', 'store_orders', ['school_id', 'status'])

    op.create_table(
        'store_order_items',
        *_base_columns(tenant=False),
        _ref('order_id', 'store_orders', nullable=False),
        _ref('product_id', 'store_products', nullable=False),
        sa.Column('product_name', sa.String(200), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('size', sa.String(20)),
        sa.Column('color', sa.String(30)),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
    )
    _base_indexes('store_order_items', tenant=False)
    op.create_index('ix_store_order_items_order_id', 'store_order_items', ['order_id'])

    # Documents
    op.create_table(
        'documents',
        *_base_columns(),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum(
            'AUTORIZACION', 'CIRCULAR', 'REGLAMENTO', 'CONTRATO', 'PERMISO', 'OTRO', name='document_type'
        ), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.Enum(
            'DRAFT', 'PENDING', 'PARTIALLY_SIGNED', 'COMPLETED', 'CANCELLED', 'EXPIRED', name='document_status'
        ), nullable=False),
        sa.Column('target_role', postgresql.ENUM(name='user_role', create_type=False)),
        _ref('group_id', 'groups'),
        sa.Column('requires_all', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', TS),
        sa.Column('completed_at', TS),
        _ref('created_by', 'users', nullable=False),
    )
    _base_indexes('documents')
    op.create_index('ix_documents_status', 'documents', ['status'])
    op.create_index('idx_document_school_status', 'documents', ['school_id', 'status'])

    op.create_table(
        'document_signatures',
        *_base_columns(),
        _ref('document_id', 'documents', nullable=False),
        _ref('user_id', 'users', nullable=False),
        _ref('student_id', 'students'),
        sa.Column('signature_data', sa.Text()),
        sa.Column('verification_code', sa.String(32), nullable=False),
        sa.Column('ip_address', sa.String(64)),
        sa.Column('user_agent', sa.String(500)),
        sa.Column('signed_at', TS, nullable=False),
        sa.UniqueConstraint('document_id', 'user_id', name='uq_document_signature_user'),
    )
    _base_indexes('document_signatures')
    op.create_index('ix_document_signatures_document_id', 'document_signatures', ['document_id'])
    op.create_index('ix_document_signatures_user_id', 'document_signatures', ['user_id'])
    op.create_index(
        'ix_document_signatures_verification_code', 'document_signatures', ['verification_code'], unique=True
    )

    # Appointments and calendar
    op.create_table(
        'appointments',
        *_base_columns(),
        _ref('parent_id', 'users', nullable=False),
        _ref('teacher_id', 'users', nullable=False),
        _ref('student_id', 'students'),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5)),
        sa.Column('subject', sa.String(200), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('teacher_notes', sa.Text()),
        sa.Column('status', sa.Enum(
            'PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'NO_SHOW', name='appointment_status'
        ), nullable=False),
        _ref('cancelled_by', 'users'),
        sa.Column('cancel_reason', sa.String(500)),
        sa.Column('cancelled_at', TS),
        sa.Column('is_video_call', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('meeting_url', sa.String(500)),
        sa.Column('meeting_room_id', sa.String(100)),
    )
    _base_indexes('appointments')
    op.create_index('ix_appointments_parent_id', 'appointments', ['parent_id'])
    op.create_index('ix_appointments_teacher_id', 'appointments', ['teacher_id'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])
    op.create_index('idx_appointment_teacher_slot', 'appointments', ['teacher_id', 'date', 'start_time'])

    op.create_table(
        'events',
        *_base_columns(),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('start_date', TS, nullable=False),
        sa.Column('end_date', TS, nullable=False),
        sa.Column('all_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('location', sa.String(300)),
        sa.Column('type', sa.Enum(
            'ESCOLAR', 'REUNION', 'EXAMEN', 'FESTIVO', 'EXCURSION', 'OTRO', name='event_type'
        ), nullable=False),
        sa.Column('color', sa.String(7), nullable=False, server_default='#1B4079'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ref('group_id', 'groups'),
        _ref('created_by', 'users', nullable=False),
    )
    _base_indexes('events')
    op.create_index('ix_events_start_date', 'events', ['start_date'])

    op.create_table(
        'event_attendees',
        *_base_columns(tenant=False),
        _ref('event_id', 'events', nullable=False),
        _ref('user_id', 'users', nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'CONFIRMED', 'DECLINED', name='attendee_status'), nullable=False),
        sa.Column('response_at', TS),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_attendee'),
    )
    _base_indexes('event_attendees', tenant=False)
    op.create_index('ix_event_attendees_event_id', 'event_attendees', ['event_id'])
    op.create_index('ix_event_attendees_user_id', 'event_attendees', ['user_id'])

    # CRM
    op.create_table(
        'crm_segments',
        *_base_columns(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('filters', JSONB, nullable=False, server_default='{}'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ref('created_by', 'users'),
    )
    _base_indexes('crm_segments')

    op.create_table(
        'email_templates',
        *_base_columns(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('subject', sa.String(300), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('category', sa.String(50)),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    _base_indexes('email_templates')

    op.create_table(
        'campaigns',
        *_base_columns(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('subject', sa.String(300)),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('EMAIL', 'SMS', 'PUSH', name='campaign_type'), nullable=False),
        _ref('segment_id', 'crm_segments'),
        _ref('template_id', 'email_templates'),
        sa.Column('status', sa.Enum('DRAFT', 'SENDING', 'SENT', 'FAILED', name='campaign_status'), nullable=False),
        sa.Column('total_recipients', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivered_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opened_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('clicked_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scheduled_at', TS),
        sa.Column('sent_at', TS),
        _ref('created_by', 'users', nullable=False),
    )
    _base_indexes('campaigns')
    op.create_index('ix_campaigns_status', 'campaigns', ['status'])

    op.create_table(
        'campaign_recipients',
        *_base_columns(tenant=False),
        _ref('campaign_id', 'campaigns', nullable=False),
        _ref('user_id', 'users', nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200)),
        sa.Column('status', sa.Enum('PENDING', 'SENT', 'FAILED', 'OPENED', name='recipient_status'), nullable=False),
        sa.Column('sent_at', TS),
        sa.Column('opened_at', TS),
        sa.Column('error', sa.String(500)),
        sa.UniqueConstraint('campaign_id', 'user_id', name='uq_campaign_recipient'),
    )
    _base_indexes('campaign_recipients', tenant=False)
    op.create_index('ix_campaign_recipients_campaign_id', 'campaign_recipients', ['campaign_id'])

    # Gallery
    op.create_table(
        'albums',
        *_base_columns(),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('event_date', TS),
        sa.Column('visibility', sa.Enum('PUBLIC', 'PRIVATE', 'GROUP_ONLY', name='album_visibility'), nullable=False),
        _ref('group_id', 'groups'),
        sa.Column('cover_url', sa.String(500)),
        sa.Column('photo_count', sa.Integer(), nullable=False, server_default='0'),
        _ref('created_by', 'users', nullable=False),
    )
    _base_indexes('albums')

    op.create_table(
        'photos',
        *_base_columns(),
        _ref('album_id', 'albums', nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        sa.Column('thumbnail_url', sa.String(500)),
        sa.Column('caption', sa.String(500)),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processed_at', TS),
        _ref('uploaded_by', 'users', nullable=False),
    )
    _base_indexes('photos')
    op.create_index('ix_photos_album_id', 'photos', ['album_id'])

    op.create_table(
        'photo_tags',
        *_base_columns(tenant=False),
        _ref('photo_id', 'photos', nullable=False),
        _ref('student_id', 'students', nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False, server_default='1'),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ref('tagged_by', 'users'),
        sa.UniqueConstraint('photo_id', 'student_id', name='uq_photo_tag_student'),
    )
    _base_indexes('photo_tags', tenant=False)
    op.create_index('ix_photo_tags_photo_id', 'photo_tags', ['photo_id'])
    op.create_index('ix_photo_tags_student_id', 'photo_tags', ['student_id'])

    # Messaging
    op.create_table(
        'conversations',
        *_base_columns(),
        sa.Column('type', sa.Enum('DIRECT', 'GROUP', name='conversation_type'), nullable=False),
        sa.Column('title', sa.String(200)),
        sa.Column('last_message_at', TS),
        _ref('created_by', 'users'),
    )
    _base_indexes('conversations')
    op.create_index('ix_conversations_last_message_at', 'conversations', ['last_message_at'])

    op.create_table(
        'conversation_participants',
        *_base_columns(tenant=False),
        _ref('conversation_id', 'conversations', nullable=False),
        _ref('user_id', 'users', nullable=False),
        sa.Column('last_read_at', TS),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_conversation_participant'),
    )
    _base_indexes('conversation_participants', tenant=False)
    op.create_index('ix_conversation_participants_conversation_id', 'conversation_participants', ['conversation_id'])
    op.create_index('ix_conversation_participants_user_id', 'conversation_participants', ['user_id'])

    op.create_table(
        'messages',
        *_base_columns(tenant=False),
        _ref('conversation_id', 'conversations', nullable=False),
        _ref('sender_id', 'users', nullable=False),
        sa.Column('content', sa.Text()),
        sa.Column('type', sa.Enum('TEXT', 'FILE', 'IMAGE', name='message_type'), nullable=False),
        sa.Column('file_url', sa.String(500)),
        sa.Column('file_name', sa.String(255)),
    )
    _base_indexes('messages', tenant=False)
    op.create_index('idx_message_conversation_created', 'messages', ['conversation_id', 'created_at'])


def downgrade() -> None:
    for table in TABLES:
        op.drop_table(table)
    for name in ENUMS:
        op.execute(f'DROP TYPE IF EXISTS {name}')
