"""Main Telegram bot module."""
import asyncio
import html
import logging
import re
from datetime import UTC, date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Update,
)
from telegram.error import BadRequest
from telegram.ext import Application, CallbackContext

from versebot import monitoring
from versebot.config import settings
from versebot.models.base import SessionLocal
from versebot.models.exercise_models import (
    ExerciseType,
    InvalidInputError,
    TranscriptionError,
    TypingKind,
)
from versebot.models.models import AccountStatus, BibleOrder, User
from versebot.services.audio_service import AudioService
from versebot.services.exercises import BaseExercise
from versebot.services.practice_service import PracticeService
from versebot.services.progress_service import ProgressRecorder, ProgressService
from versebot.services.user_service import UserService
from versebot.services.verse_service import get_verse_service

# Get logger for this module
logger = logging.getLogger(__name__)


class AdminNotificationHandler(logging.Handler):
    """Logging handler that forwards error records to admin users."""

    def __init__(self, application: Application, level=logging.ERROR):
        super().__init__(level)
        self.application = application
        self.setFormatter(logging.Formatter(settings.logging.format))

    def emit(self, record):
        """Send the log record to admin users."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        message = html.escape(self.format(record))
        for admin_id in settings.bot.admin_ids:
            loop.create_task(
                self.application.bot.send_message(
                    chat_id=admin_id,
                    text=f"⚠️ {record.levelname} Alert:\n\n{message}",
                    parse_mode="HTML",
                )
            )


admin_notification_handler: Optional[AdminNotificationHandler] = None


def setup_admin_notifications(app: Application, level: str = "ERROR") -> None:
    """Forward log records at ``level`` and above to the admins."""
    global admin_notification_handler
    if level == "OFF" or not settings.bot.admin_ids:
        return
    admin_notification_handler = AdminNotificationHandler(app, level=logging.getLevelName(level))
    logging.getLogger().addHandler(admin_notification_handler)


def disable_admin_notifications() -> None:
    """Stop forwarding log records to the admins."""
    global admin_notification_handler
    if admin_notification_handler is not None:
        logging.getLogger().removeHandler(admin_notification_handler)
        admin_notification_handler = None


# Conversation states
MAIN_MENU, PRACTICING, ADMIN_COMMAND = range(3)

# Button texts
MENU = "🏠 Menu"
THIS_WEEK = "📖 This Week's Verse"
PRACTICE = "💡 Practice"
VIEW_STATISTICS = "📊 View Statistics"
SETTINGS = "⚙️ Settings"
ADMIN_MENU = "🛠️ Admin Menu"
LISTEN = "🔊 Listen"
AUDIT_LOG = "📜 Audit log"

EXERCISE_BUTTONS = {
    ExerciseType.TYPING: ("⌨️ Type the Verse", "Type out the complete verse from memory"),
    ExerciseType.REFERENCE_QUIZ: ("📚 Reference Quiz", "Can you remember the book, chapter, and verse?"),
    ExerciseType.FILL_BLANKS: ("🧠 Fill in the Blanks", "Complete the verse with missing words"),
    ExerciseType.REFLECTION: ("❤️ Personal Reflection", "How does this verse apply to your life?"),
}

REMINDER_HOURS = [6, 7, 8, 9, 12, 18, 20, 21]

# Telegram rejects longer texts
MAX_MESSAGE_LENGTH = 4096

SUSPEND_USAGE = "Expected: <telegram id> [12h | 7d | 2w | YYYY-MM-DD] [reason]"
SUSPENSION_DURATION = re.compile(r"^(\d+)([hdw])$")
DURATION_UNITS = {"h": "hours", "d": "days", "w": "weeks"}


def msg_back_to(text: str) -> str: return f"🔙 {text}"


ERR_MSG_NOT_REGISTERED = "Please /start first to register"
ERR_MSG_NOT_ADMIN = "You don't have admin privileges"
ERR_MSG_SUSPENDED = "Your account is suspended. Please contact an administrator."
KB_BACK_TO_MENU = [[InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")]]


async def log_received(update: Update, context_type: str) -> None:
    """Log an incoming update."""
    txt = ""
    if context_type == "start":
        txt = ""
    elif update.callback_query:
        txt = f" {update.callback_query.data}"
    elif update.message and update.message.text:
        txt = f" {update.message.text}"
    user = update.effective_user
    logger.info(f"Received @{context_type:8} from user {user.username} ({user.id}){txt}")


async def reply(update: Update, text: str, keyboard: Optional[List[List[InlineKeyboardButton]]] = None) -> None:
    """Edit the message behind a button press, or answer a text message."""
    reply_markup = InlineKeyboardMarkup(keyboard) if keyboard else None
    if update.callback_query:
        try:
            await update.callback_query.edit_message_text(text, reply_markup=reply_markup, parse_mode="HTML")
        except BadRequest as e:
            # Redrawing an unchanged view
            if "message is not modified" not in str(e).lower():
                raise
            logger.debug(f"Skipped redraw of an unchanged message: {e}")
    else:
        await update.message.reply_text(text, reply_markup=reply_markup, parse_mode="HTML")


def get_user_from_update(update: Update) -> Optional[User]:
    """Get user from database based on update."""
    user = update.effective_user
    if not user:
        return None

    db = SessionLocal()
    try:
        return UserService(db).get_user_by_telegram_id(user.id)
    finally:
        db.close()


async def require_active_user(update: Update) -> Optional[User]:
    """Return the registered, non-suspended user or tell them why not."""
    user = get_user_from_update(update)
    if not user:
        await reply(update, ERR_MSG_NOT_REGISTERED, KB_BACK_TO_MENU)
        return None
    db = SessionLocal()
    try:
        active = UserService(db).is_active(user)
    finally:
        db.close()
    if not active:
        await reply(update, ERR_MSG_SUSPENDED)
        return None
    return user


def drop_exercise(context: CallbackContext) -> None:
    """Forget the running exercise, storing its queued completions first."""
    exercise: Optional[BaseExercise] = context.user_data.pop("exercise", None)
    if exercise is None or not isinstance(exercise.on_complete, ProgressRecorder):
        return
    recorder = exercise.on_complete
    if recorder.pending:
        recorder.retry()
    if recorder.pending:
        logger.warning(
            f"Dropping {len(recorder.pending)} unsaved {exercise.type.value} completions for user {recorder.user_id}"
        )


async def handle_start(update: Update, context: CallbackContext) -> int:
    """Start the conversation and show main menu."""
    telegram_user = update.effective_user

    await log_received(update, "start")
    drop_exercise(context)

    db = SessionLocal()
    try:
        user_service = UserService(db)
        user = user_service.get_or_create_user(
            telegram_id=telegram_user.id,
            username=telegram_user.username,
            display_name=telegram_user.first_name,
        )
        if not user_service.is_active(user):
            await reply(update, ERR_MSG_SUSPENDED)
            return MAIN_MENU

        keyboard = [
            [InlineKeyboardButton(THIS_WEEK, callback_data="verse")],
            [InlineKeyboardButton(PRACTICE, callback_data="practice")],
            [InlineKeyboardButton(VIEW_STATISTICS, callback_data="statistics")],
            [InlineKeyboardButton(SETTINGS, callback_data="settings")],
        ]
        if user.is_admin:
            keyboard.append([InlineKeyboardButton(ADMIN_MENU, callback_data="admin_menu")])

        message = (f"Welcome to VerseBot, {html.escape(user.display_name or 'friend')}! 👋\n\n"
                   "Each week brings one verse to hide in your heart.\n"
                   "What would you like to do?")
        await reply(update, message, keyboard)
        return MAIN_MENU
    finally:
        db.close()


async def handle_callback(update: Update, context: CallbackContext) -> int:
    """Handle callback queries from inline keyboard."""
    query = update.callback_query
    await query.answer()

    await log_received(update, "callback")

    if query.data == "back_to_menu":
        return await handle_start(update, context)
    elif query.data.startswith(BaseExercise.CALLBACK_PREFIX):
        return await handle_exercise_callback(update, context)
    elif query.data == "verse":
        return await show_verse(update, context)
    elif query.data == "listen":
        return await send_verse_audio(update, context)
    elif query.data == "practice":
        return await show_practice_menu(update, context)
    elif query.data.startswith("practice_"):
        return await start_practice(update, context)
    elif query.data == "statistics":
        return await show_statistics(update, context)
    elif query.data == "settings":
        return await show_settings(update, context)
    elif query.data.startswith("settings_"):
        return await handle_settings(update, context)
    elif query.data == "admin_menu":
        return await show_admin_menu(update, context)
    elif query.data.startswith("admin_"):
        return await handle_admin_menu(update, context)

    return MAIN_MENU


async def handle_message(update: Update, context: CallbackContext) -> int:
    """Handle messages outside of an exercise."""
    user = get_user_from_update(update)
    if not user:
        await update.message.reply_text(ERR_MSG_NOT_REGISTERED, reply_markup=InlineKeyboardMarkup(KB_BACK_TO_MENU))
        return MAIN_MENU

    await log_received(update, "message")

    await update.message.reply_text("Please start with /start")

    return MAIN_MENU


async def show_verse(update: Update, context: CallbackContext) -> int:
    """Show the verse of the week."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    db = SessionLocal()
    try:
        practice_service = PracticeService(db)
        verse = practice_service.current_verse(user)
        progress = practice_service.week_progress(user)
        day = progress.current_week_day
        days = settings.exercise.days_per_verse
        calendar = " ".join("✓" if d < day else ("●" if d == day else "○") for d in range(1, days + 1))
        message = (
            f"{THIS_WEEK}\nWeek of {progress.week_start_date:%B %d}\n\n"
            f"<i>\"{html.escape(verse.text)}\"</i>\n"
            f"<b>{html.escape(verse.reference)}</b> ({verse.translation})\n\n"
            f"Day {day} of {days}: {calendar}"
        )
    finally:
        db.close()

    await reply(update, message, [
        [InlineKeyboardButton(LISTEN, callback_data="listen"),
         InlineKeyboardButton(PRACTICE, callback_data="practice")],
        [InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")],
    ])
    return MAIN_MENU


async def send_verse_audio(update: Update, context: CallbackContext) -> int:
    """Send an audio reading of the verse of the week."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    db = SessionLocal()
    try:
        verse = PracticeService(db).current_verse(user)
    finally:
        db.close()

    audio_path = await asyncio.to_thread(AudioService.generate_verse_audio, verse)
    if not audio_path:
        await update.callback_query.message.reply_text("Sorry, I couldn't prepare the audio. Please try again later.")
        return MAIN_MENU
    try:
        with open(audio_path, "rb") as audio:
            await update.callback_query.message.reply_audio(audio, title=verse.reference)
    except OSError as e:
        logger.error(f"Error sending audio file: {str(e)}")
    return MAIN_MENU


async def show_practice_menu(update: Update, context: CallbackContext) -> int:
    """Show the exercise types with today's completions ticked."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    db = SessionLocal()
    try:
        practice_service = PracticeService(db)
        progress = practice_service.week_progress(user)
        completed = practice_service.progress_service.get_completed_exercise_types(progress.id)
    finally:
        db.close()

    keyboard = []
    lines = []
    for exercise_type, (label, description) in EXERCISE_BUTTONS.items():
        done = " ✓" if exercise_type in completed else ""
        keyboard.append([InlineKeyboardButton(f"{label}{done}", callback_data=f"practice_{exercise_type.value}")])
        lines.append(f"{label}{done}: {description}")
    keyboard.append([InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")])

    percent = round(len(completed) / len(EXERCISE_BUTTONS) * 100)
    message = (
        f"<b>Practice Exercises</b> · {html.escape(progress.verse_reference)}\n"
        "Choose your learning method for today\n\n"
        + "\n".join(lines)
        + f"\n\nThis week's progress: {len(completed)} of {len(EXERCISE_BUTTONS)} exercises ({percent}% complete)"
    )
    await reply(update, message, keyboard)
    return MAIN_MENU


async def start_practice(update: Update, context: CallbackContext) -> int:
    """Start the chosen exercise on this week's verse."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    exercise_type = ExerciseType(update.callback_query.data[len("practice_"):])
    db = SessionLocal()
    try:
        exercise = PracticeService(db).start_exercise(user, exercise_type)
    except InvalidInputError as e:
        logger.error(f"Cannot start {exercise_type.value} for user {user.id}: {e}")
        await reply(update, "This verse can't be practiced in this way. Please try another exercise.",
                    [[InlineKeyboardButton(msg_back_to(PRACTICE), callback_data="practice")]])
        return MAIN_MENU
    finally:
        db.close()

    drop_exercise(context)
    context.user_data["exercise"] = exercise
    await send_exercise_view(update, exercise)
    return PRACTICING


async def send_exercise_view(update: Update, exercise: BaseExercise) -> None:
    """Send the current view of an exercise to the user."""

    def prepare_buttons(buttons: List[List[Dict[str, str]]]) -> List[List[InlineKeyboardButton]]:
        return [
            [InlineKeyboardButton(button["text"], callback_data=button["callback_data"]) for button in row]
            for row in buttons
        ]

    view = exercise.render()
    keyboard = prepare_buttons(view.buttons)
    keyboard.append([InlineKeyboardButton(msg_back_to(PRACTICE), callback_data="practice"),
                     InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")])
    await reply(update, view.message, keyboard)


async def handle_exercise_message(update: Update, context: CallbackContext) -> int:
    """Apply a text message to the running exercise."""
    exercise: Optional[BaseExercise] = context.user_data.get("exercise")
    if exercise is None:
        return await handle_start(update, context)

    await log_received(update, "exercise")

    exercise.handle_text(update.message.text or "")
    await send_exercise_view(update, exercise)
    return PRACTICING


async def handle_exercise_callback(update: Update, context: CallbackContext) -> int:
    """Apply a button press to the running exercise."""
    exercise: Optional[BaseExercise] = context.user_data.get("exercise")
    if exercise is None:
        return await handle_start(update, context)

    action = exercise.parse_callback(update.callback_query.data)
    if action is None or not exercise.handle_action(action):
        return PRACTICING
    await send_exercise_view(update, exercise)
    return PRACTICING


async def handle_voice(update: Update, context: CallbackContext) -> int:
    """Transcribe a voice message and append it to the typing exercise.

    The transcript is appended to whatever the exercise holds once the
    transcription returns, so text sent in the meantime is kept before it.
    """
    exercise: Optional[BaseExercise] = context.user_data.get("exercise")
    if exercise is None or not isinstance(exercise.kind, TypingKind):
        await update.message.reply_text("Voice input works in the typing exercise only.")
        return PRACTICING if exercise else MAIN_MENU

    await log_received(update, "voice")

    voice = update.message.voice
    try:
        voice_file = await voice.get_file()
        audio = bytes(await voice_file.download_as_bytearray())
        transcript = await asyncio.to_thread(
            AudioService().transcribe, audio, "voice.ogg", voice.mime_type or "audio/ogg"
        )
    except TranscriptionError as e:
        logger.warning(f"Voice input failed for user {update.effective_user.id}: {e}")
        await update.message.reply_text("🎙️ I couldn't understand that recording. You can keep typing instead.")
        return PRACTICING

    if context.user_data.get("exercise") is not exercise:
        logger.info("Exercise changed while transcribing, dropping transcript")
        return PRACTICING
    exercise.append_transcript(transcript)
    await send_exercise_view(update, exercise)
    return PRACTICING


async def show_statistics(update: Update, context: CallbackContext) -> int:
    """Show user statistics."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    db = SessionLocal()
    try:
        stats = ProgressService(db).get_user_statistics(user.id)
        message = ""
        if user.is_admin:
            message += f"📊 Global statistics:\n\nTotal users: {UserService(db).get_users_count()}\n\n"
    finally:
        db.close()

    message += (
        "📊 Your Practice Statistics:\n\n"
        f"Exercises completed: {stats['total_exercises']}\n"
        f"Average accuracy: {stats['average_accuracy']:.0f}%\n"
        f"Total time spent: {stats['total_time_minutes']:.1f} minutes\n"
        f"Verses completed: {stats['verses_completed']}\n"
    )
    for exercise_type, (label, _) in EXERCISE_BUTTONS.items():
        message += f"{label}: {stats['exercises_by_type'].get(exercise_type.value, 0)}\n"

    await reply(update, message, KB_BACK_TO_MENU)
    return MAIN_MENU


async def show_settings(update: Update, context: CallbackContext) -> int:
    """Show settings menu."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    other_order = BibleOrder.CHRONOLOGICAL if user.bible_order == BibleOrder.CANONICAL else BibleOrder.CANONICAL
    keyboard = [
        [InlineKeyboardButton(f"📚 Switch to {other_order} order", callback_data=f"settings_order_{other_order}")],
        [InlineKeyboardButton(
            "🔕 Disable reminders" if user.daily_reminder_enabled else "🔔 Enable reminders",
            callback_data="settings_reminder_toggle",
        )],
        [InlineKeyboardButton(f"{hour:02d}:00", callback_data=f"settings_hour_{hour}") for hour in REMINDER_HOURS[:4]],
        [InlineKeyboardButton(f"{hour:02d}:00", callback_data=f"settings_hour_{hour}") for hour in REMINDER_HOURS[4:]],
    ]
    translations = get_verse_service().translations()
    if len(translations) > 1:
        keyboard.append([
            InlineKeyboardButton(translation, callback_data=f"settings_translation_{translation}")
            for translation in translations
        ])
    keyboard.append([InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")])

    reminder = f"{user.daily_reminder_hour:02d}:00 UTC" if user.daily_reminder_enabled else "off"
    await reply(
        update,
        "⚙️ Settings\n\n"
        f"Translation: {user.preferred_translation}\n"
        f"Bible order: {user.bible_order}\n"
        f"Daily reminder: {reminder}\n\n"
        "What would you like to change?",
        keyboard,
    )
    return MAIN_MENU


async def handle_settings(update: Update, context: CallbackContext) -> int:
    """Apply a settings button."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU

    data = update.callback_query.data
    db = SessionLocal()
    try:
        user_service = UserService(db)
        if data.startswith("settings_order_"):
            user_service.update_user_settings(user.id, bible_order=data[len("settings_order_"):])
        elif data == "settings_reminder_toggle":
            user_service.update_user_settings(user.id, daily_reminder_enabled=not user.daily_reminder_enabled)
        elif data.startswith("settings_hour_"):
            user_service.update_user_settings(
                user.id, daily_reminder_hour=int(data[len("settings_hour_"):]), daily_reminder_enabled=True
            )
        elif data.startswith("settings_translation_"):
            user_service.update_user_settings(user.id, preferred_translation=data[len("settings_translation_"):])
    except ValueError as e:
        logger.warning(f"Invalid settings update {data!r} from user {user.id}: {e}")
        await update.callback_query.message.reply_text(str(e))
    finally:
        db.close()

    return await show_settings(update, context)


def parse_expiry(token: str, now: datetime) -> Optional[datetime]:
    """Read ``12h``, ``7d``, ``2w`` or an ISO date; anything else is not an expiry."""
    match = SUSPENSION_DURATION.match(token)
    if match:
        try:
            return now + timedelta(**{DURATION_UNITS[match.group(2)]: int(match.group(1))})
        except OverflowError:
            raise ValueError(f"Expiry {token} is too far away")
    try:
        return datetime.combine(date.fromisoformat(token), time.min, tzinfo=UTC)
    except ValueError:
        return None


def parse_suspend_command(text: str, now: Optional[datetime] = None) -> Tuple[int, Optional[str], Optional[datetime]]:
    """Split ``<telegram id> [expiry] [reason]`` into its parts."""
    now = now or datetime.now(UTC)
    parts = text.strip().split(maxsplit=1)
    if not parts or not parts[0].isdigit():
        raise ValueError(SUSPEND_USAGE)
    telegram_id = int(parts[0])
    if len(parts) == 1:
        return telegram_id, None, None

    rest = parts[1].split(maxsplit=1)
    expires_at = parse_expiry(rest[0], now)
    if expires_at is None:
        return telegram_id, parts[1], None
    return telegram_id, rest[1] if len(rest) > 1 else None, expires_at


async def show_admin_menu(update: Update, context: CallbackContext) -> int:
    """Show admin menu with the list of users and their status."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU
    if not user.is_admin:
        await reply(update, ERR_MSG_NOT_ADMIN, KB_BACK_TO_MENU)
        return MAIN_MENU

    db = SessionLocal()
    try:
        user_service = UserService(db)
        users = user_service.get_users()
        counts = user_service.get_status_counts()
    finally:
        db.close()

    message = (
        "🛠️ Admin Menu\n\n"
        f"Active: {counts[AccountStatus.ACTIVE]}, suspended: {counts[AccountStatus.SUSPENDED]}\n\n"
        "🎭 Users:\n"
    )
    keyboard = []
    for listed in users:
        status = listed.status.upper()
        if listed.status == AccountStatus.SUSPENDED:
            details = []
            if listed.suspension_reason:
                details.append(html.escape(listed.suspension_reason))
            if listed.suspension_expires_at:
                details.append(f"until {listed.suspension_expires_at:%Y-%m-%d %H:%M}")
            if details:
                status += f" ({', '.join(details)})"
        admin = " (admin)" if listed.is_admin else ""
        name = html.escape(listed.username or listed.display_name or "-")
        message += f"{listed.telegram_id} {name}{admin}: {status}, logins: {listed.login_count}\n"
        if listed.status == AccountStatus.SUSPENDED:
            keyboard.append([InlineKeyboardButton(
                f"✅ Reactivate {listed.username or listed.telegram_id}",
                callback_data=f"admin_reactivate_{listed.id}",
            )])
    keyboard.append([InlineKeyboardButton("🚫 Suspend a user", callback_data="admin_suspend")])
    keyboard.append([InlineKeyboardButton(AUDIT_LOG, callback_data="admin_audit_log")])
    keyboard.extend(KB_BACK_TO_MENU)

    await reply(update, message, keyboard)
    return MAIN_MENU


async def show_admin_logs(update: Update, context: CallbackContext) -> int:
    """Show the most recent admin actions."""
    db = SessionLocal()
    try:
        logs = UserService(db).get_admin_logs()
    finally:
        db.close()

    message = f"{AUDIT_LOG}\n\n"
    if not logs:
        message += "No admin actions yet."
    for log in logs:
        actor = log.actor_telegram_id if log.actor_telegram_id is not None else "system"
        target = html.escape(log.user.username or str(log.user.telegram_id))
        line = f"{log.created_at:%Y-%m-%d %H:%M} {actor} → {target}: {html.escape(log.message)}\n"
        if len(message) + len(line) > MAX_MESSAGE_LENGTH:
            break
        message += line

    await reply(update, message, [[InlineKeyboardButton(msg_back_to(ADMIN_MENU), callback_data="admin_menu")]])
    return MAIN_MENU


async def handle_admin_menu(update: Update, context: CallbackContext) -> int:
    """Handle admin menu buttons."""
    user = await require_active_user(update)
    if not user:
        return MAIN_MENU
    if not user.is_admin:
        await reply(update, ERR_MSG_NOT_ADMIN, KB_BACK_TO_MENU)
        return MAIN_MENU

    data = update.callback_query.data
    if data == "admin_suspend":
        await reply(
            update,
            "Send the Telegram ID of the user to suspend, optionally followed by an expiry "
            "(<code>12h</code>, <code>7d</code>, <code>2w</code> or a date) and a reason, e.g.\n"
            "<code>123456789 7d spamming</code>",
            [[InlineKeyboardButton(msg_back_to(ADMIN_MENU), callback_data="admin_menu")]],
        )
        return ADMIN_COMMAND
    if data == "admin_audit_log":
        return await show_admin_logs(update, context)
    if data.startswith("admin_reactivate_"):
        db = SessionLocal()
        try:
            UserService(db).reactivate_user(int(data[len("admin_reactivate_"):]), user.telegram_id)
        except ValueError as e:
            await update.callback_query.message.reply_text(str(e))
        finally:
            db.close()
    return await show_admin_menu(update, context)


async def handle_admin_command(update: Update, context: CallbackContext) -> int:
    """Suspend the user named in an admin's message."""
    admin = get_user_from_update(update)
    if not admin or not admin.is_admin:
        await update.message.reply_text(ERR_MSG_NOT_ADMIN)
        return MAIN_MENU

    await log_received(update, "admin")

    db = SessionLocal()
    try:
        user_service = UserService(db)
        telegram_id, reason, expires_at = parse_suspend_command(update.message.text or "")
        target = user_service.get_user_by_telegram_id(telegram_id)
        if not target:
            raise ValueError(f"No user with Telegram ID {telegram_id}")
        user_service.suspend_user(target.id, admin.telegram_id, reason, expires_at)
        message = f"🚫 User {target.telegram_id} suspended"
        if expires_at is not None:
            message += f" until {expires_at:%Y-%m-%d %H:%M} UTC"
        message += "."
    except ValueError as e:
        message = f"⚠️ {html.escape(str(e))}"
    finally:
        db.close()

    await update.message.reply_text(
        message,
        reply_markup=InlineKeyboardMarkup([[InlineKeyboardButton(msg_back_to(ADMIN_MENU), callback_data="admin_menu")]]),
        parse_mode="HTML",
    )
    return MAIN_MENU


async def handle_error(update: object, context: CallbackContext) -> None:
    """Log errors raised by handlers."""
    monitoring.error_count.labels(error_type=type(context.error).__name__).inc()
    logger.error(f"Error while handling update {update}: {context.error}", exc_info=context.error)
