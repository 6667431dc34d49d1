from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class PipelineStatus(str, Enum):
    LEAD = "lead"
    VISITA_AGENDADA = "visita_agendada"
    NEGOCIACAO = "negociacao"
    ATIVO = "ativo"
    INATIVO = "inativo"
    CANCELADO = "cancelado"


class AppRole(str, Enum):
    GESTOR = "gestor"
    RECEPCAO = "recepcao"
    PROFESSOR = "professor"
    ALUNO = "aluno"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    PIX = "pix"
    BOLETO = "boleto"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    CASH = "cash"


class AppointmentType(str, Enum):
    AULA_EXPERIMENTAL = "aula_experimental"
    AVALIACAO_FISICA = "avaliacao_fisica"
    TREINO = "treino"
    CONSULTA = "consulta"
    OUTROS = "outros"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AutomationType(str, Enum):
    WELCOME = "welcome"
    RENEWAL_REMINDER = "renewal_reminder"
    BIRTHDAY = "birthday"
    OVERDUE = "overdue"
    INACTIVITY = "inactivity"


class AutomationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ContractStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    SIGNED = "signed"
    CANCELLED = "cancelled"


class SenderType(str, Enum):
    PROFESSOR = "professor"
    ALUNO = "aluno"


class InteractionType(str, Enum):
    LIGACAO = "ligacao"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    PRESENCIAL = "presencial"
    SISTEMA = "sistema"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GoalType(str, Enum):
    LEADS = "leads"
    CONVERSIONS = "conversions"
    REVENUE = "revenue"
    CHECK_INS = "check_ins"
    NEW_CLIENTS = "new_clients"


class GoalPeriod(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class GoalStatus(str, Enum):
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BEHIND = "behind"
    COMPLETED = "completed"


PIPELINE_STATUS_LABELS: dict[PipelineStatus, str] = {
    PipelineStatus.LEAD: "Lead",
    PipelineStatus.VISITA_AGENDADA: "Visita Agendada",
    PipelineStatus.NEGOCIACAO: "Negociação",
    PipelineStatus.ATIVO: "Ativo",
    PipelineStatus.INATIVO: "Inativo",
    PipelineStatus.CANCELADO: "Cancelado",
}

ROLE_LABELS: dict[AppRole, str] = {
    AppRole.GESTOR: "Gestor",
    AppRole.RECEPCAO: "Recepção",
    AppRole.PROFESSOR: "Professor",
    AppRole.ALUNO: "Aluno",
}

SUBSCRIPTION_STATUS_LABELS: dict[SubscriptionStatus, str] = {
    SubscriptionStatus.ACTIVE: "Ativa",
    SubscriptionStatus.PENDING: "Pendente",
    SubscriptionStatus.CANCELLED: "Cancelada",
    SubscriptionStatus.EXPIRED: "Expirada",
    SubscriptionStatus.SUSPENDED: "Suspensa",
}

INVOICE_STATUS_LABELS: dict[InvoiceStatus, str] = {
    InvoiceStatus.PENDING: "Pendente",
    InvoiceStatus.PAID: "Pago",
    InvoiceStatus.OVERDUE: "Vencido",
    InvoiceStatus.CANCELLED: "Cancelado",
    InvoiceStatus.REFUNDED: "Reembolsado",
}

PAYMENT_METHOD_LABELS: dict[PaymentMethod, str] = {
    PaymentMethod.PIX: "PIX",
    PaymentMethod.BOLETO: "Boleto",
    PaymentMethod.CREDIT_CARD: "Cartão de Crédito",
    PaymentMethod.DEBIT_CARD: "Cartão de Débito",
    PaymentMethod.CASH: "Dinheiro",
}

APPOINTMENT_TYPE_LABELS: dict[AppointmentType, str] = {
    AppointmentType.AULA_EXPERIMENTAL: "Aula Experimental",
    AppointmentType.AVALIACAO_FISICA: "Avaliação Física",
    AppointmentType.TREINO: "Treino",
    AppointmentType.CONSULTA: "Consulta",
    AppointmentType.OUTROS: "Outros",
}

APPOINTMENT_STATUS_LABELS: dict[AppointmentStatus, str] = {
    AppointmentStatus.SCHEDULED: "Agendado",
    AppointmentStatus.CONFIRMED: "Confirmado",
    AppointmentStatus.COMPLETED: "Concluído",
    AppointmentStatus.CANCELLED: "Cancelado",
    AppointmentStatus.NO_SHOW: "Não Compareceu",
}

AUTOMATION_TYPE_LABELS: dict[AutomationType, str] = {
    AutomationType.WELCOME: "Boas-vindas",
    AutomationType.RENEWAL_REMINDER: "Lembrete de Renovação",
    AutomationType.BIRTHDAY: "Aniversário",
    AutomationType.OVERDUE: "Cobrança",
    AutomationType.INACTIVITY: "Inatividade",
}

AUTOMATION_TYPE_ICONS: dict[AutomationType, str] = {
    AutomationType.WELCOME: "👋",
    AutomationType.RENEWAL_REMINDER: "🔔",
    AutomationType.BIRTHDAY: "🎂",
    AutomationType.OVERDUE: "💰",
    AutomationType.INACTIVITY: "😴",
}

AUTOMATION_STATUS_LABELS: dict[AutomationStatus, str] = {
    AutomationStatus.PENDING: "Pendente",
    AutomationStatus.SENT: "Enviado",
    AutomationStatus.FAILED: "Falhou",
    AutomationStatus.CANCELLED: "Cancelado",
}

CONTRACT_STATUS_LABELS: dict[ContractStatus, str] = {
    ContractStatus.DRAFT: "Rascunho",
    ContractStatus.PENDING: "Pendente",
    ContractStatus.SIGNED: "Assinado",
    ContractStatus.CANCELLED: "Cancelado",
}

INTERACTION_TYPE_LABELS: dict[InteractionType, str] = {
    InteractionType.LIGACAO: "Ligação",
    InteractionType.WHATSAPP: "WhatsApp",
    InteractionType.EMAIL: "E-mail",
    InteractionType.PRESENCIAL: "Presencial",
    InteractionType.SISTEMA: "Sistema",
}

INTERACTION_TYPE_ICONS: dict[InteractionType, str] = {
    InteractionType.LIGACAO: "📞",
    InteractionType.WHATSAPP: "💬",
    InteractionType.EMAIL: "📧",
    InteractionType.PRESENCIAL: "👤",
    InteractionType.SISTEMA: "🤖",
}

TASK_PRIORITY_LABELS: dict[TaskPriority, str] = {
    TaskPriority.LOW: "Baixa",
    TaskPriority.MEDIUM: "Média",
    TaskPriority.HIGH: "Alta",
}

GOAL_TYPE_LABELS: dict[GoalType, str] = {
    GoalType.LEADS: "Novos leads",
    GoalType.CONVERSIONS: "Conversões",
    GoalType.REVENUE: "Faturamento",
    GoalType.CHECK_INS: "Check-ins",
    GoalType.NEW_CLIENTS: "Novos clientes",
}

GOAL_PERIOD_LABELS: dict[GoalPeriod, str] = {
    GoalPeriod.MONTHLY: "Mensal",
    GoalPeriod.QUARTERLY: "Trimestral",
    GoalPeriod.YEARLY: "Anual",
}

GOAL_STATUS_LABELS: dict[GoalStatus, str] = {
    GoalStatus.ON_TRACK: "No ritmo",
    GoalStatus.AT_RISK: "Em risco",
    GoalStatus.BEHIND: "Atrasada",
    GoalStatus.COMPLETED: "Concluída",
}

DAY_OF_WEEK_LABELS = ["Domingo", "Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado"]


# ----------------------------------------------------------------------
# Embedded join rows (PostgREST `alias:table(columns)`)
# ----------------------------------------------------------------------


class LeadRef(BaseModel):
    id: Optional[str] = None
    full_name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    cpf: Optional[str] = None


class PlanRef(BaseModel):
    id: Optional[str] = None
    name: str = ""
    price: Optional[Decimal] = None
    duration_days: Optional[int] = None


class ProfileRef(BaseModel):
    id: Optional[str] = None
    full_name: str = ""
    avatar_url: Optional[str] = None


# ----------------------------------------------------------------------
# Tables
# ----------------------------------------------------------------------


class Unit(BaseModel):
    id: str
    name: str
    cnpj: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None
    favicon_url: Optional[str] = None
    primary_color: Optional[str] = None
    dark_primary_color: Optional[str] = None
    dark_background_color: Optional[str] = None
    dark_accent_color: Optional[str] = None
    font_family: Optional[str] = None
    # Days past due before access is blocked
    overdue_grace_days: Optional[int] = None
    allow_entry_if_overdue: Optional[bool] = None
    inactivity_alert_days: Optional[int] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None


class StaffProfile(BaseModel):
    # profiles.id; `user_id` is auth.users.id
    id: str
    user_id: str
    unit_id: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    telegram_user_id: Optional[int] = None
    role: Optional[AppRole] = None

    @property
    def is_manager(self) -> bool:
        return self.role is AppRole.GESTOR


class Lead(BaseModel):
    id: str
    unit_id: str
    full_name: str
    phone: str
    email: Optional[str] = None
    cpf: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    status: PipelineStatus = PipelineStatus.LEAD
    assigned_to: Optional[str] = None
    profile_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CheckIn(BaseModel):
    id: str
    unit_id: str
    lead_id: str
    checked_in_at: datetime
    method: Optional[str] = None
    access_status: Optional[str] = None
    denial_reason: Optional[str] = None
    device_id: Optional[str] = None
    lead: Optional[LeadRef] = None


class Plan(BaseModel):
    id: str
    unit_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    duration_days: int
    features: list[str] = Field(default_factory=list)
    is_active: Optional[bool] = True
    access_type: Optional[str] = None
    max_access_per_day: Optional[int] = None
    allowed_hours_start: Optional[time] = None
    allowed_hours_end: Optional[time] = None


class Subscription(BaseModel):
    id: str
    unit_id: str
    lead_id: str
    plan_id: str
    start_date: date
    end_date: date
    status: SubscriptionStatus
    auto_renew: Optional[bool] = None
    billing_type: Optional[str] = None
    installments: Optional[int] = None
    current_installment: Optional[int] = None
    payment_day: Optional[int] = None
    created_at: Optional[datetime] = None
    lead: Optional[LeadRef] = None
    plan: Optional[PlanRef] = None


class Invoice(BaseModel):
    id: str
    unit_id: str
    subscription_id: str
    lead_id: str
    amount: Decimal
    due_date: date
    status: InvoiceStatus
    description: Optional[str] = None
    paid_at: Optional[datetime] = None
    reference_month: Optional[str] = None
    installment_number: Optional[int] = None
    created_at: Optional[datetime] = None
    lead: Optional[LeadRef] = None


class Payment(BaseModel):
    id: str
    unit_id: str
    invoice_id: str
    amount: Decimal
    payment_method: PaymentMethod
    paid_at: datetime
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class Appointment(BaseModel):
    id: str
    unit_id: str
    title: str
    type: AppointmentType
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    scheduled_date: date
    start_time: time
    end_time: time
    lead_id: Optional[str] = None
    professor_id: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    lead: Optional[LeadRef] = None
    professor: Optional[ProfileRef] = None


class ProfessorAvailability(BaseModel):
    id: str
    unit_id: str
    professor_id: str
    # 0 = Sunday
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_active: Optional[bool] = True


class ScheduleBlock(BaseModel):
    id: str
    unit_id: str
    block_date: date
    professor_id: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    all_day: Optional[bool] = False
    reason: Optional[str] = None


class Exercise(BaseModel):
    id: str
    name: str
    unit_id: Optional[str] = None
    muscle_group: Optional[str] = None
    equipment: Optional[str] = None
    difficulty: Optional[str] = None
    description: Optional[str] = None
    is_global: Optional[bool] = None


class WorkoutExercise(BaseModel):
    id: str
    workout_id: str
    exercise_name: str
    exercise_id: Optional[str] = None
    sets: int
    reps: str
    rest_seconds: Optional[int] = None
    load_value: Optional[float] = None
    load_unit: Optional[str] = None
    advanced_technique: Optional[str] = None
    notes: Optional[str] = None
    order_index: int = 0


class Workout(BaseModel):
    id: str
    unit_id: str
    lead_id: str
    name: str
    description: Optional[str] = None
    is_active: Optional[bool] = True
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    exercises: list[WorkoutExercise] = Field(default_factory=list)


class ChatRoom(BaseModel):
    id: str
    unit_id: str
    lead_id: str
    professor_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    lead: Optional[LeadRef] = None
    professor: Optional[ProfileRef] = None
    unread_count: int = 0


class ChatMessage(BaseModel):
    id: str
    room_id: str
    sender_id: str
    sender_type: SenderType
    content: str
    read_at: Optional[datetime] = None
    created_at: datetime


class AutomationRule(BaseModel):
    id: str
    unit_id: str
    name: str
    type: AutomationType
    subject: str
    message_template: str
    trigger_days: Optional[int] = None
    channel: Optional[str] = "email"
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None


class AutomationLog(BaseModel):
    id: str
    unit_id: str
    type: AutomationType
    status: AutomationStatus
    recipient: str
    message: str
    subject: Optional[str] = None
    channel: Optional[str] = None
    lead_id: Optional[str] = None
    rule_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    lead: Optional[LeadRef] = None


class ActivityLog(BaseModel):
    id: str
    unit_id: str
    entity_type: str
    action: str
    description: str
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class PhysicalAssessment(BaseModel):
    id: str
    unit_id: str
    lead_id: str
    assessment_date: date
    assessed_by: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    bmi: Optional[float] = None
    body_fat_percentage: Optional[float] = None
    lean_mass: Optional[float] = None
    muscle_mass: Optional[float] = None
    protocol: Optional[str] = None
    chest_skinfold: Optional[float] = None
    abdominal_skinfold: Optional[float] = None
    thigh_skinfold: Optional[float] = None
    triceps_skinfold: Optional[float] = None
    suprailiac_skinfold: Optional[float] = None
    subscapular_skinfold: Optional[float] = None
    axillary_skinfold: Optional[float] = None
    chest: Optional[float] = None
    waist: Optional[float] = None
    hips: Optional[float] = None
    neck: Optional[float] = None
    left_arm: Optional[float] = None
    right_arm: Optional[float] = None
    left_thigh: Optional[float] = None
    right_thigh: Optional[float] = None
    left_calf: Optional[float] = None
    right_calf: Optional[float] = None
    resting_heart_rate: Optional[int] = None
    blood_pressure_systolic: Optional[int] = None
    blood_pressure_diastolic: Optional[int] = None
    vo2_max: Optional[float] = None
    flexibility_test: Optional[float] = None
    notes: Optional[str] = None


class Contract(BaseModel):
    id: str
    unit_id: str
    lead_id: str
    content: str
    status: ContractStatus = ContractStatus.DRAFT
    template_id: Optional[str] = None
    subscription_id: Optional[str] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    signed_at: Optional[datetime] = None
    signature_data: Optional[str] = None
    signed_user_agent: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    lead: Optional[LeadRef] = None


class ContractTemplate(BaseModel):
    id: str
    unit_id: str
    name: str
    content: str
    is_default: Optional[bool] = False
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None


class Interaction(BaseModel):
    id: str
    lead_id: str
    type: InteractionType
    description: str
    user_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Task(BaseModel):
    id: str
    unit_id: str
    title: str
    description: Optional[str] = None
    lead_id: Optional[str] = None
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    due_date: Optional[date] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    lead: Optional[LeadRef] = None


class Goal(BaseModel):
    id: str
    unit_id: str
    name: str
    type: GoalType
    target_value: Decimal
    current_value: Decimal = Decimal("0")
    period_type: GoalPeriod
    period_start: date
    period_end: date
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
