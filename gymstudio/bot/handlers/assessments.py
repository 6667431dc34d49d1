from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from gymstudio.bot.handlers.common import pick_lead, require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.bodyfat import (
    SKINFOLD_LABELS,
    Gender,
    Protocol,
    Skinfolds,
    calculate_body_fat,
    classify_body_fat,
    required_skinfolds,
)
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import assessment_svc

router = Router(name="assessments")
logger = configure_logging()

PROTOCOL_LABELS = {
    Protocol.POLLOCK3: "Pollock 3 dobras",
    Protocol.POLLOCK7: "Pollock 7 dobras",
    Protocol.GUEDES: "Guedes",
}


class BodyFatStates(StatesGroup):
    waiting_for_protocol = State()
    waiting_for_gender = State()
    waiting_for_age = State()
    waiting_for_weight = State()
    waiting_for_skinfold = State()


def _parse_number(text: str | None) -> float | None:
    try:
        value = float((text or "").strip().replace(",", "."))
    except ValueError:
        return None
    return value if value > 0 else None


def _protocol_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=label, callback_data=f"bf_protocol:{protocol.value}")]
            for protocol, label in PROTOCOL_LABELS.items()
        ]
    )


def _gender_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="Masculino", callback_data=f"bf_gender:{Gender.MALE.value}"),
                InlineKeyboardButton(text="Feminino", callback_data=f"bf_gender:{Gender.FEMALE.value}"),
            ]
        ]
    )


@router.message(Command("bodyfat"))
async def cmd_bodyfat(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /bodyfat [lead] - skinfold body fat calculator.

    With a lead, gender and age come from the record and the result is
    saved as a physical assessment.
    """

    await state.clear()
    if command.args:
        if not await require_unit(message, staff, unit):
            return
        lead = await pick_lead(message, unit, command.args)
        if lead is None:
            return
        today = local_now().date()
        await state.update_data(
            lead_id=lead.id,
            lead_name=lead.full_name,
            gender=assessment_svc.gender_from_lead(lead.gender).value,
            age=assessment_svc.age_on(lead.birth_date, today),
        )

    await state.set_state(BodyFatStates.waiting_for_protocol)
    await message.answer("Escolha o protocolo:", reply_markup=_protocol_keyboard())


@router.callback_query(BodyFatStates.waiting_for_protocol, F.data.startswith("bf_protocol:"))
async def bodyfat_protocol(callback: CallbackQuery, state: FSMContext) -> None:
    await state.update_data(protocol=callback.data.split(":", 1)[1], folds={})
    await callback.answer()
    data = await state.get_data()
    if data.get("gender"):
        await state.set_state(BodyFatStates.waiting_for_weight)
        await callback.message.answer(
            f"Aluno: <b>{escape(data['lead_name'])}</b>, {data['age']} anos.\nEnvie o <b>peso</b> (kg)."
        )
        return
    await state.set_state(BodyFatStates.waiting_for_gender)
    await callback.message.answer("Sexo:", reply_markup=_gender_keyboard())


@router.callback_query(BodyFatStates.waiting_for_gender, F.data.startswith("bf_gender:"))
async def bodyfat_gender(callback: CallbackQuery, state: FSMContext) -> None:
    await state.update_data(gender=callback.data.split(":", 1)[1])
    await state.set_state(BodyFatStates.waiting_for_age)
    await callback.answer()
    await callback.message.answer("Envie a <b>idade</b>.")


@router.message(BodyFatStates.waiting_for_age, F.text)
async def bodyfat_age(message: Message, state: FSMContext) -> None:
    age = _parse_number(message.text)
    if age is None or age > 120:
        await message.answer("Idade inválida.")
        return
    await state.update_data(age=int(age))
    await state.set_state(BodyFatStates.waiting_for_weight)
    await message.answer("Envie o <b>peso</b> (kg).")


async def _ask_next_fold(message: Message, state: FSMContext) -> bool:
    """Ask for the next missing skinfold; False when all are filled."""

    data = await state.get_data()
    for site in required_skinfolds(data["protocol"], data["gender"]):
        if site not in data["folds"]:
            await state.update_data(current_site=site)
            await message.answer(f"Dobra <b>{SKINFOLD_LABELS[site]}</b> (mm):")
            return True
    return False


@router.message(BodyFatStates.waiting_for_weight, F.text)
async def bodyfat_weight(message: Message, state: FSMContext) -> None:
    weight = _parse_number(message.text)
    if weight is None or weight > 400:
        await message.answer("Peso inválido.")
        return
    await state.update_data(weight=weight)
    await state.set_state(BodyFatStates.waiting_for_skinfold)
    await _ask_next_fold(message, state)


@router.message(BodyFatStates.waiting_for_skinfold, F.text)
async def bodyfat_skinfold(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    value = _parse_number(message.text)
    if value is None:
        await message.answer("Valor inválido. Envie a medida em milímetros.")
        return

    data = await state.get_data()
    folds = {**data["folds"], data["current_site"]: value}
    await state.update_data(folds=folds)
    if await _ask_next_fold(message, state):
        return

    await state.clear()
    skinfolds = Skinfolds(**folds)
    result = calculate_body_fat(data["protocol"], data["gender"], data["age"], data["weight"], skinfolds)
    if result is None:
        await message.answer(MessageTemplates.error("Não foi possível calcular", "medidas incompletas"))
        return

    lines = [
        MessageTemplates.header("Composição corporal", "📏"),
        f"<i>{result.protocol}</i>",
        "",
        MessageTemplates.stat("Gordura", f"{result.body_fat_percentage}%"),
        MessageTemplates.stat("Classificação", classify_body_fat(result.body_fat_percentage, data["gender"])),
        MessageTemplates.stat("Massa gorda", result.fat_mass, "kg"),
        MessageTemplates.stat("Massa magra", result.lean_mass, "kg"),
        MessageTemplates.stat("Densidade", result.body_density),
    ]

    if data.get("lead_id") and unit is not None:
        try:
            await assessment_svc.create_assessment(
                get_supabase_client(),
                unit.id,
                data["lead_id"],
                assessment_svc.AssessmentInput(
                    assessment_date=local_now().date(),
                    weight=data["weight"],
                    skinfolds=skinfolds,
                ),
                protocol=Protocol(data["protocol"]),
                gender=Gender(data["gender"]),
                age=data["age"],
                assessed_by=staff.id if staff else None,
            )
        except SupabaseError as exc:
            logger.exception("Error saving assessment: %s", exc)
            lines += ["", MessageTemplates.error("Avaliação não salva", exc.user_message)]
        else:
            lines += ["", MessageTemplates.success("Avaliação salva no histórico do aluno.")]

    await message.answer("\n".join(lines))


@router.message(Command("assessments"))
async def cmd_assessments(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return

    history = await assessment_svc.list_assessments(get_supabase_client(), lead.id)
    if not history:
        await message.answer(f"{escape(lead.full_name)} ainda não tem avaliações.")
        return

    lines = [MessageTemplates.header(f"Avaliações - {lead.full_name}", "📈"), ""]
    for item in history:
        parts = [f"{item.assessment_date:%d/%m/%Y}"]
        if item.weight:
            parts.append(f"{item.weight:g} kg")
        if item.bmi:
            parts.append(f"IMC {item.bmi:g}")
        if item.body_fat_percentage:
            parts.append(f"{item.body_fat_percentage:g}% gordura")
        lines.append(" | ".join(parts))
    await message.answer("\n".join(lines))
