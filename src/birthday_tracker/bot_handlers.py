from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from telegram import Update
from telegram.ext import (
    CallbackContext,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from birthday_tracker import form_state
from birthday_tracker.form_state import FormState, FormValidationError
from birthday_tracker.models import BirthRecord
from birthday_tracker.recurrence import (
    MONTH_NAMES,
    age_turning,
    days_until_next_occurrence,
    format_display_date,
)
from birthday_tracker.settings import Settings
from birthday_tracker.sync import BirthdayBook

LOGGER = logging.getLogger(__name__)

(
    STATE_NAME,
    STATE_BIRTHDAY,
    STATE_TIMEZONE,
    STATE_PHOTO,
    STATE_CONFIRM,
    STATE_EDIT_SELECT,
    STATE_DELETE_SELECT,
) = range(7)

FORM_KEY = "birthday_form"
SELECTION_KEY = "birthday_selection"

SKIP_WORDS = {"skip", "keep", "same"}
CLEAR_WORDS = {"none", "clear", "-"}


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings
    book: BirthdayBook


@dataclass(frozen=True)
class BirthdayListRow:
    name: str
    display_date: str
    timezone: str
    days_until: int
    turning_age: int | None
    photo_url: str | None
    unsynced: bool


def _month_from_name(value: str) -> int | None:
    lowered = value.strip().lower()
    if len(lowered) < 3:
        return None
    for index, month_name in enumerate(MONTH_NAMES, start=1):
        if month_name.lower().startswith(lowered):
            return index
    return None


def parse_birthday_text(raw_text: str) -> tuple[int, int, int | None]:
    """Parse a birthday into (day, month, year).

    Only the 1-31 day range is checked, not the length of the given month.
    """
    value = raw_text.strip()

    full_match = re.fullmatch(r"(\d{4})-(\d{1,2})-(\d{1,2})", value)
    short_match = re.fullmatch(r"(\d{1,2})-(\d{1,2})", value)
    named_match = re.fullmatch(r"(\d{1,2})\s+([A-Za-z]+)(?:\s+(\d{4}))?", value)

    if full_match:
        year: int | None = int(full_match.group(1))
        month = int(full_match.group(2))
        day = int(full_match.group(3))
    elif short_match:
        year = None
        month = int(short_match.group(1))
        day = int(short_match.group(2))
    elif named_match:
        day = int(named_match.group(1))
        parsed_month = _month_from_name(named_match.group(2))
        if parsed_month is None:
            raise ValueError(f"Unknown month name: {named_match.group(2)}")
        month = parsed_month
        year = int(named_match.group(3)) if named_match.group(3) else None
    else:
        raise ValueError("Birthday must use YYYY-MM-DD, MM-DD or '5 May [1985]'")

    if month < 1 or month > 12:
        raise ValueError(f"Invalid month: {month}")
    if day < 1 or day > 31:
        raise ValueError(f"Invalid day: {day}")
    return day, month, year


def _is_skip(value: str) -> bool:
    return value.strip().lower() in SKIP_WORDS


def _format_days_until(days_until: int) -> str:
    if days_until == 0:
        return "Today 🎉"
    if days_until == 1:
        return "In 1 day"
    return f"In {days_until} days"


def build_list_rows(book: BirthdayBook, reference: datetime) -> list[BirthdayListRow]:
    rule = book.leap_day_rule
    rows: list[BirthdayListRow] = []
    for record in book.upcoming(reference):
        rows.append(
            BirthdayListRow(
                name=record.name,
                display_date=format_display_date(record),
                timezone=record.timezone,
                days_until=days_until_next_occurrence(record, reference, rule),
                turning_age=age_turning(record, reference, rule),
                photo_url=record.photo_url,
                unsynced=book.is_unsynced(record.identifier),
            )
        )
    return rows


def _render_list_message(rows: list[BirthdayListRow]) -> str:
    if not rows:
        return "No birthdays yet. Add someone with /add"

    lines = [f"Upcoming birthdays ({len(rows)})", "Sorted by soonest:"]

    for index, row in enumerate(rows, start=1):
        marker = " (unsynced)" if row.unsynced else ""
        lines.append(f"{index}. {row.name}{marker}")
        place = f"{row.display_date} • {row.timezone}" if row.timezone else row.display_date
        lines.append(f"   {place}")
        details = [_format_days_until(row.days_until)]
        if row.turning_age is not None:
            details.append(f"Turning {row.turning_age}")
        else:
            details.append("Year unknown")
        if row.photo_url:
            details.append(f"Photo {row.photo_url}")
        lines.append(f"   {' | '.join(details)}")
        lines.append("")

    return "\n".join(lines).rstrip()


def _format_birthday(record: BirthRecord) -> str:
    if record.year is None:
        return format_display_date(record)
    return f"{format_display_date(record)} {record.year}"


def _render_selection(records: list[BirthRecord], heading: str) -> str:
    lines = [heading]
    for index, record in enumerate(records, start=1):
        lines.append(f"{index}. {record.name} | {_format_birthday(record)} | {record.timezone}")
    return "\n".join(lines)


def _render_summary(record: BirthRecord, state: FormState) -> str:
    year_text = str(record.year) if record.year is not None else "(not set)"
    action = "Save changes" if state.is_editing else "Add birthday"
    return (
        f"{action}?\n"
        f"Name: {record.name}\n"
        f"Birthday: {format_display_date(record)}\n"
        f"Year: {year_text}\n"
        f"Timezone: {record.timezone}\n"
        f"Photo: {record.photo_url or '(none)'}\n\n"
        "Reply with yes to save, or no to cancel."
    )


def _render_help() -> str:
    return (
        "Commands:\n"
        "/list - Show upcoming birthdays, soonest first\n"
        "/add - Add a birthday\n"
        "/edit - Edit an existing birthday\n"
        "/delete - Remove a birthday\n"
        "/status - Show the Supabase connection status\n"
        "/sync - Retry changes that did not reach Supabase\n"
        "/cancel - Cancel the current form\n"
        "/help - Show this help message\n\n"
        "Birthday format examples:\n"
        "- 1985-05-05\n"
        "- 05-05 (month-day, year unknown)\n"
        "- 5 May 1985"
    )


def _deps(context: CallbackContext) -> HandlerDependencies:
    return context.application.bot_data["handler_deps"]


def _current_form(context: CallbackContext) -> FormState | None:
    state = context.user_data.get(FORM_KEY)
    return state if isinstance(state, FormState) else None


def _store_form(context: CallbackContext, state: FormState) -> None:
    context.user_data[FORM_KEY] = state


def _clear_form(context: CallbackContext) -> None:
    context.user_data.pop(FORM_KEY, None)
    context.user_data.pop(SELECTION_KEY, None)


async def _expired(update: Update) -> int:
    await update.effective_message.reply_text("Form session expired. Send /add or /edit to start again.")
    return ConversationHandler.END


async def help_command(update: Update, context: CallbackContext) -> None:
    await update.effective_message.reply_text(_render_help())


async def status_command(update: Update, context: CallbackContext) -> None:
    book = _deps(context).book
    lines = [book.status]
    if book.unsynced_count:
        lines.append(f"{book.unsynced_count} change(s) waiting. Send /sync to retry.")
    await update.effective_message.reply_text("\n".join(lines))


async def list_command(update: Update, context: CallbackContext) -> None:
    book = _deps(context).book
    rows = build_list_rows(book, datetime.now())
    await update.effective_message.reply_text(_render_list_message(rows))


async def sync_command(update: Update, context: CallbackContext) -> None:
    book = _deps(context).book
    if not book.unsynced_count:
        await update.effective_message.reply_text("Nothing to sync. Every change reached Supabase.")
        return

    report = await book.retry_unsynced()
    await update.effective_message.reply_text(
        f"Synced {report.succeeded} change(s). {report.remaining} still waiting.\n{book.status}"
    )


async def add_start(update: Update, context: CallbackContext) -> int:
    settings = _deps(context).settings
    context.user_data.pop(SELECTION_KEY, None)
    _store_form(context, form_state.reset(settings.default_timezone))
    await update.effective_message.reply_text("Add birthday.\nStep 1/5: Send the person's name.")
    return STATE_NAME


async def edit_start(update: Update, context: CallbackContext) -> int:
    book = _deps(context).book
    records = book.upcoming(datetime.now())
    if not records:
        await update.effective_message.reply_text("No birthdays yet. Add someone with /add")
        return ConversationHandler.END

    context.user_data[SELECTION_KEY] = [record.identifier for record in records]
    await update.effective_message.reply_text(
        _render_selection(records, "Reply with the number of the entry to edit:")
    )
    return STATE_EDIT_SELECT


async def _selected_record(update: Update, context: CallbackContext) -> BirthRecord | None:
    identifiers = context.user_data.get(SELECTION_KEY) or []
    raw_text = (update.effective_message.text or "").strip()
    if not raw_text.isdigit() or not 1 <= int(raw_text) <= len(identifiers):
        await update.effective_message.reply_text(
            f"Please send a number between 1 and {len(identifiers)}."
        )
        return None

    try:
        return _deps(context).book.get(identifiers[int(raw_text) - 1])
    except KeyError:
        await update.effective_message.reply_text("That birthday no longer exists. Pick another number.")
        return None


async def edit_select(update: Update, context: CallbackContext) -> int:
    if not context.user_data.get(SELECTION_KEY):
        return await _expired(update)

    record = await _selected_record(update, context)
    if record is None:
        return STATE_EDIT_SELECT

    context.user_data.pop(SELECTION_KEY, None)
    _store_form(context, form_state.start_edit(record))
    await update.effective_message.reply_text(
        f"Editing {record.name}.\nStep 1/5: Send a new name, or skip to keep \"{record.name}\"."
    )
    return STATE_NAME


async def form_name(update: Update, context: CallbackContext) -> int:
    state = _current_form(context)
    if state is None:
        return await _expired(update)

    raw_text = (update.effective_message.text or "").strip()
    if not (state.is_editing and _is_skip(raw_text)):
        if not raw_text:
            await update.effective_message.reply_text("Name cannot be empty. Please send a name.")
            return STATE_NAME
        state = form_state.set_field(state, "name", raw_text)

    _store_form(context, state)
    keep_hint = ", or skip to keep the current date" if state.is_editing else ""
    await update.effective_message.reply_text(
        f"Step 2/5: Send the birthday as YYYY-MM-DD, MM-DD or '5 May 1985'{keep_hint}."
    )
    return STATE_BIRTHDAY


async def form_birthday(update: Update, context: CallbackContext) -> int:
    state = _current_form(context)
    if state is None:
        return await _expired(update)

    raw_text = (update.effective_message.text or "").strip()
    if not (state.is_editing and _is_skip(raw_text)):
        try:
            day, month, year = parse_birthday_text(raw_text)
        except ValueError as exc:
            await update.effective_message.reply_text(f"{exc}. Please try again.")
            return STATE_BIRTHDAY
        state = form_state.set_field(state, "day", str(day))
        state = form_state.set_field(state, "month", str(month))
        state = form_state.set_field(state, "year", str(year) if year is not None else "")

    _store_form(context, state)
    await update.effective_message.reply_text(
        f"Step 3/5: Send the timezone (e.g. Asia/Tokyo), or skip to keep {state.timezone}."
    )
    return STATE_TIMEZONE


async def form_timezone(update: Update, context: CallbackContext) -> int:
    state = _current_form(context)
    if state is None:
        return await _expired(update)

    raw_text = (update.effective_message.text or "").strip()
    if raw_text and not _is_skip(raw_text):
        state = form_state.set_field(state, "timezone", raw_text)

    _store_form(context, state)
    current = state.photo_url or "none"
    await update.effective_message.reply_text(
        "Step 4/5: Send a photo URL, none for no photo,\n"
        f"or skip to keep the current one ({current})."
    )
    return STATE_PHOTO


async def form_photo(update: Update, context: CallbackContext) -> int:
    state = _current_form(context)
    if state is None:
        return await _expired(update)

    raw_text = (update.effective_message.text or "").strip()
    if raw_text.lower() in CLEAR_WORDS:
        state = form_state.set_field(state, "photo_url", "")
    elif raw_text and not _is_skip(raw_text):
        state = form_state.set_field(state, "photo_url", raw_text)

    try:
        record = form_state.build_record(state)
    except FormValidationError as exc:
        _store_form(context, form_state.with_error(state, str(exc)))
        await update.effective_message.reply_text(
            f"{exc}\nSend the photo URL again, or /cancel to start over."
        )
        return STATE_PHOTO

    state = form_state.with_error(state, None)
    _store_form(context, state)
    await update.effective_message.reply_text("Step 5/5: " + _render_summary(record, state))
    return STATE_CONFIRM


async def form_confirm(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    state = _current_form(context)
    if state is None:
        return await _expired(update)

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_CONFIRM

    if decision in {"no", "n"}:
        _clear_form(context)
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        record = form_state.build_record(state)
    except FormValidationError as exc:
        _store_form(context, form_state.with_error(state, str(exc)))
        await update.effective_message.reply_text(f"{exc}\nReply with no, or /cancel to start over.")
        return STATE_CONFIRM

    try:
        if state.is_editing:
            record = await deps.book.update(record)
        else:
            record = await deps.book.add(record)
    except KeyError:
        LOGGER.warning("Birthday %s disappeared before the edit was saved", state.editing_id)
        _clear_form(context)
        await update.effective_message.reply_text(
            "Could not save because that birthday no longer exists. Send /edit and try again."
        )
        return ConversationHandler.END

    _clear_form(context)
    if deps.book.is_unsynced(record.identifier):
        await update.effective_message.reply_text(
            f"Saved locally. {deps.book.status}. Send /sync to retry."
        )
    else:
        await update.effective_message.reply_text("Birthday saved.")
    return ConversationHandler.END


async def delete_start(update: Update, context: CallbackContext) -> int:
    book = _deps(context).book
    records = book.upcoming(datetime.now())
    if not records:
        await update.effective_message.reply_text("No birthdays yet. Add someone with /add")
        return ConversationHandler.END

    context.user_data[SELECTION_KEY] = [record.identifier for record in records]
    await update.effective_message.reply_text(
        _render_selection(records, "Reply with the number of the entry to delete:")
    )
    return STATE_DELETE_SELECT


async def delete_select(update: Update, context: CallbackContext) -> int:
    if not context.user_data.get(SELECTION_KEY):
        return await _expired(update)

    record = await _selected_record(update, context)
    if record is None:
        return STATE_DELETE_SELECT

    book = _deps(context).book
    context.user_data.pop(SELECTION_KEY, None)
    await book.delete(record.identifier)

    if book.is_unsynced(record.identifier):
        await update.effective_message.reply_text(
            f"Deleted {record.name} locally. {book.status}. Send /sync to retry."
        )
    else:
        await update.effective_message.reply_text(f"Deleted {record.name}.")
    return ConversationHandler.END


async def cancel_command(update: Update, context: CallbackContext) -> int:
    _clear_form(context)
    await update.effective_message.reply_text("Form canceled.")
    return ConversationHandler.END


def build_handlers() -> list:
    text_only = filters.TEXT & ~filters.COMMAND

    form_conversation = ConversationHandler(
        entry_points=[
            CommandHandler("add", add_start),
            CommandHandler("edit", edit_start),
        ],
        states={
            STATE_EDIT_SELECT: [MessageHandler(text_only, edit_select)],
            STATE_NAME: [MessageHandler(text_only, form_name)],
            STATE_BIRTHDAY: [MessageHandler(text_only, form_birthday)],
            STATE_TIMEZONE: [MessageHandler(text_only, form_timezone)],
            STATE_PHOTO: [MessageHandler(text_only, form_photo)],
            STATE_CONFIRM: [MessageHandler(text_only, form_confirm)],
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="birthday_form_conversation",
        persistent=False,
    )

    delete_conversation = ConversationHandler(
        entry_points=[CommandHandler("delete", delete_start)],
        states={
            STATE_DELETE_SELECT: [MessageHandler(text_only, delete_select)],
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="delete_birthday_conversation",
        persistent=False,
    )

    return [
        CommandHandler("help", help_command),
        CommandHandler("start", help_command),
        CommandHandler("list", list_command),
        CommandHandler("status", status_command),
        CommandHandler("sync", sync_command),
        CommandHandler("cancel", cancel_command),
        form_conversation,
        delete_conversation,
    ]
