"""Main Telegram bot module."""
import asyncio
import logging
from typing import Any, Dict, List, MutableMapping, Optional

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Message, Update
from telegram.error import BadRequest, TelegramError
from telegram.ext import CallbackContext

from sweepbot import monitoring
from sweepbot.config import settings
from sweepbot.exceptions import ConfigurationError, EnvironmentUnavailableError, ValidationError
from sweepbot.models.base import SessionLocal
from sweepbot.models.session_models import (
    Sentence,
    SessionConfig,
    SessionPhase,
    SessionSummary,
    Stage,
    StageView,
    SubmissionOutcome,
    SubmissionResult,
    TTSMode,
)
from sweepbot.services.preference_service import PreferenceService
from sweepbot.services.report_service import ReportService
from sweepbot.services.sentence_service import demo_sentences, parse_sentences
from sweepbot.services.session_service import SessionController
from sweepbot.services.share_codec import decode_or_default, encode_share_payload
from sweepbot.services.speech_service import SpeechAttemptTracker, SpeechService
from sweepbot.services.timer_service import TimerService, format_remaining

# Get logger for this module
logger = logging.getLogger(__name__)

# Conversation states
MAIN_MENU, ADDING_SENTENCES, PRACTICE = range(3)

# Button texts
MENU = "🏠 Menu"
START_PRACTICE = "▶️ Start practice"
ADD_SENTENCES = "📝 Add sentences"
DEMO_SENTENCES = "📚 Demo sentences"
CLEAR_SENTENCES = "🗑️ Clear sentences"
SETTINGS = "⚙️ Settings"
SHARE = "🔗 Share"
CHECK = "✅ Check"
UNDO = "↩️ Undo"
RESET = "🔄 Reset"
HINT = "💡 Hint"
LISTEN = "🔊 Listen"
SAY_IT = "🎤 Say it"
NEXT = "⏭️ Next"
RESTART = "🔄 Restart"
WRONG_SENTENCES = "📋 Wrong sentences"
COPY_REPORT = "📋 Copy report"

TRANSLATION_SEPARATOR = "---"
TELEGRAM_MESSAGE_LIMIT = 4096
TIMER_CHOICES = (0, 30, 60, 120, 180, 300)
TIMER_REFRESH_SECONDS = 10
TIMER_FINAL_SECONDS = 5
TTS_LABELS = {
    TTSMode.NONE: "off",
    TTSMode.AFTER_CORRECT: "after correct answers",
    TTSMode.FREE: "any time",
}

PAIRING_INTRO = (
    "🔗 Word pairs\n\n"
    "Some words always come together. When you see one half, look for the other!\n\n"
    "• Verb + preposition: depend on, interested in, look forward to\n"
    "• Correlatives: both ... and, either ... or, not only ... but also\n"
    "• Comparisons: taller than, as tall as\n\n"
    "Hints will point these pairs out when a sentence has one."
)


def msg_back_to(text: str) -> str: return f"🔙 {text}"


KB_BACK_TO_MENU = [InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")]

# Shared across chats; each chat has its own countdown
timer_service = TimerService()
speech_service = SpeechService()


class TileTray:
    """Answer slots of one chat: which shuffled tiles were placed, in order."""

    def __init__(self, tiles):
        self.tiles = list(tiles)
        self.placed: List[int] = []

    def place(self, index: int) -> bool:
        if index < 0 or index >= len(self.tiles) or index in self.placed:
            return False
        self.placed.append(index)
        return True

    def undo(self) -> bool:
        if not self.placed:
            return False
        self.placed.pop()
        return True

    def reset(self) -> None:
        self.placed = []

    @property
    def is_full(self) -> bool:
        return len(self.placed) == len(self.tiles)

    def available(self) -> List[int]:
        return [i for i in range(len(self.tiles)) if i not in self.placed]

    def slots(self) -> List[Optional[str]]:
        """Slot contents in order; None for slots still empty."""
        filled: List[Optional[str]] = [self.tiles[i] for i in self.placed]
        return filled + [None] * (len(self.tiles) - len(filled))


async def log_received(update: Update, context_type: str) -> None:
    """Log message."""
    txt = ""
    if update.callback_query:
        txt = f" {update.callback_query.data}"
    elif update.message and update.message.text:
        txt = f" {update.message.text}"
    user = update.effective_user
    logger.info(f"Received @{context_type:8} from user {user.username if user else None} ({user.id if user else None}){txt}")


async def send_popup_message(update: Update, text: str) -> None:
    """
    Show a popup message to the user.
    Falls back to a regular message when the update is not a button press.
    """
    if update.callback_query:
        await update.callback_query.answer(text=text[:200], show_alert=True)
    else:
        await update.effective_message.reply_text(f"⚠️ {text}")


async def show(update: Update, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None,
               parse_mode: Optional[str] = None) -> Optional[Message]:
    """Edit the message behind a button press, or reply to a plain message. Returns the shown message."""
    if update.callback_query:
        try:
            message = await update.callback_query.edit_message_text(text, reply_markup=reply_markup, parse_mode=parse_mode)
        except BadRequest as e:
            logger.warning(f"Error editing message: {e}")
            return None
        # Inline messages come back as True
        return message if isinstance(message, Message) else update.callback_query.message
    return await update.effective_message.reply_text(text, reply_markup=reply_markup, parse_mode=parse_mode)


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> List[str]:
    """Split text at line breaks into parts Telegram accepts."""
    parts: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                parts.append(current)
                current = ""
            parts.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            parts.append(current)
            current = line
        else:
            current = candidate
    if current:
        parts.append(current)
    return parts


def get_lock(chat_data: MutableMapping[str, Any]) -> asyncio.Lock:
    """One lock per chat; every session transition runs under it."""
    return chat_data.setdefault("lock", asyncio.Lock())


def get_sentences(chat_data: MutableMapping[str, Any]) -> List[Sentence]:
    return chat_data.setdefault("sentences", [])


def default_raw_config() -> Dict[str, Any]:
    """Learner settings before any change, as accepted by SessionConfig.from_raw."""
    return {
        "selected_stages": [int(stage) for stage in Stage],
        "random_order": False,
        "attempt_limit": 0,
        "progression_mode": "focus",
        "timer_enabled": False,
        "timer_seconds": settings.session.timer_seconds,
        "tts_mode": settings.session.tts_mode,
    }


def config_to_raw(config: SessionConfig) -> Dict[str, Any]:
    return {
        "selected_stages": [int(stage) for stage in config.selected_stages],
        "random_order": config.random_order,
        "attempt_limit": config.attempt_limit,
        "progression_mode": config.progression_mode.value,
        "timer_enabled": config.timer.enabled,
        "timer_seconds": config.timer.seconds,
        "tts_mode": config.tts_mode.value,
    }


def get_raw_config(chat_data: MutableMapping[str, Any]) -> Dict[str, Any]:
    return chat_data.setdefault("config", default_raw_config())


def get_speech_tracker(chat_data: MutableMapping[str, Any]) -> SpeechAttemptTracker:
    return chat_data.setdefault("speech_tracker", SpeechAttemptTracker())


def progress_bar(progress: float, width: int = 10) -> str:
    filled = int(round(progress * width))
    return f"{'▓' * filled}{'░' * (width - filled)} {int(round(progress * 100))}%"


def stage_text(view: StageView, tray: TileTray, remaining: Optional[int], note: str = "") -> str:
    """Message body for the item being solved."""
    lines = []
    if note:
        lines += [note, ""]
    lines += [
        f"📝 Sentence {view.sentence_index + 1}/{view.sentence_count} · Stage {int(view.stage)}: {view.stage.label}",
        view.stage.description,
    ]
    if view.sentence.translation:
        lines.append(f"💬 {view.sentence.translation}")
    lines.append(progress_bar(view.progress))
    if view.attempts_remaining is not None:
        lines.append(f"🎯 Tries left: {view.attempts_remaining}")
    if remaining is not None:
        lines.append(f"⏱️ {format_remaining(remaining)}")
    answer = " / ".join(slot if slot else "___" for slot in tray.slots())
    lines += ["", f"Your answer: {answer}"]
    return "\n".join(lines)


def stage_keyboard(view: StageView, tray: TileTray) -> InlineKeyboardMarkup:
    keyboard = []
    row = []
    for index in tray.available():
        row.append(InlineKeyboardButton(tray.tiles[index], callback_data=f"tile_{index}"))
        if len(row) == 3:
            keyboard.append(row)
            row = []
    if row:
        keyboard.append(row)
    keyboard.append([
        InlineKeyboardButton(UNDO, callback_data="tray_undo"),
        InlineKeyboardButton(RESET, callback_data="tray_reset"),
        InlineKeyboardButton(CHECK, callback_data="submit"),
    ])
    tools = [InlineKeyboardButton(HINT, callback_data="hint")]
    if view.can_speak:
        tools.append(InlineKeyboardButton(LISTEN, callback_data="speak"))
    tools.append(InlineKeyboardButton(SAY_IT, callback_data="say_it"))
    keyboard.append(tools)
    keyboard.append(KB_BACK_TO_MENU)
    return InlineKeyboardMarkup(keyboard)


async def render_stage(update: Update, context: CallbackContext, note: str = "") -> None:
    controller: SessionController = context.chat_data["controller"]
    tray: TileTray = context.chat_data["tray"]
    view = controller.current_view()
    remaining = timer_service.remaining(update.effective_chat.id)
    message = await show(update, stage_text(view, tray, remaining, note), reply_markup=stage_keyboard(view, tray))
    if message is not None:
        context.chat_data["stage_message_id"] = message.message_id


async def handle_start(update: Update, context: CallbackContext) -> int:
    """Start the conversation and show main menu."""
    await log_received(update, "start")

    sentences = get_sentences(context.chat_data)
    keyboard = [
        [InlineKeyboardButton(START_PRACTICE, callback_data="start_practice")],
        [InlineKeyboardButton(ADD_SENTENCES, callback_data="add_sentences"),
         InlineKeyboardButton(DEMO_SENTENCES, callback_data="load_demo")],
        [InlineKeyboardButton(SETTINGS, callback_data="settings"),
         InlineKeyboardButton(SHARE, callback_data="share")],
    ]
    if sentences:
        keyboard.append([InlineKeyboardButton(CLEAR_SENTENCES, callback_data="clear_sentences")])

    name = update.effective_user.first_name if update.effective_user else "there"
    message = (f"Welcome to Sweep, {name}! 👋\n\n"
               "Put English sentences back in order, chunk by chunk and word by word.\n\n"
               f"Sentences ready: {len(sentences)}")

    await show(update, message, reply_markup=InlineKeyboardMarkup(keyboard))
    return MAIN_MENU


async def handle_callback(update: Update, context: CallbackContext) -> int:
    """Handle callback queries from inline keyboard."""
    query = update.callback_query
    await log_received(update, "callback")

    data = query.data
    if data.startswith("tile_") or data in ("tray_undo", "tray_reset"):
        return await handle_tray(update, context)

    # Handlers below that show a popup answer the query themselves
    if data == "submit":
        return await handle_submit(update, context)
    elif data == "hint":
        return await handle_hint(update, context)
    elif data == "speak":
        return await handle_speak(update, context)
    elif data.startswith("set_"):
        return await handle_set_option(update, context)

    await query.answer()

    if data == "back_to_menu":
        return await handle_start(update, context)
    elif data == "start_practice":
        return await start_practice(update, context)
    elif data == "add_sentences":
        return await add_sentences(update, context)
    elif data == "load_demo":
        return await handle_demo(update, context)
    elif data == "clear_sentences":
        return await clear_sentences(update, context)
    elif data == "settings":
        return await show_settings(update, context)
    elif data == "settings_limit":
        return await show_limit_menu(update, context)
    elif data == "settings_timer":
        return await show_timer_menu(update, context)
    elif data == "share":
        return await handle_share(update, context)
    elif data in ("intro_ok", "intro_never"):
        return await handle_intro(update, context)
    elif data == "say_it":
        return await handle_say_it(update, context)
    elif data == "skip":
        return await handle_skip(update, context)
    elif data == "restart":
        return await handle_restart(update, context)
    elif data == "wrong":
        return await handle_wrong(update, context)
    elif data == "copy_report":
        return await handle_copy_report(update, context)

    return MAIN_MENU


async def handle_message(update: Update, context: CallbackContext) -> int:
    """Handle messages."""
    await log_received(update, "message")

    await update.message.reply_text(
        "Use the menu to add sentences or start practising.",
        reply_markup=InlineKeyboardMarkup([KB_BACK_TO_MENU]),
    )
    return MAIN_MENU


async def add_sentences(update: Update, context: CallbackContext) -> int:
    """Ask for new sentences."""
    await show(
        update,
        "📝 Send English sentences, one or more per line.\n\n"
        f"To add translations, write a line with {TRANSLATION_SEPARATOR} and then one translation per line:\n\n"
        "I like apples.\n"
        "She reads every day.\n"
        f"{TRANSLATION_SEPARATOR}\n"
        "나는 사과를 좋아한다.\n"
        "그녀는 매일 책을 읽는다.",
        reply_markup=InlineKeyboardMarkup([KB_BACK_TO_MENU]),
    )
    return ADDING_SENTENCES


def split_translations(text: str) -> List[str]:
    """Split a message into its sentence block and its translation block."""
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if line.strip() == TRANSLATION_SEPARATOR:
            return ["\n".join(lines[:i]), "\n".join(lines[i + 1:])]
    return [text, ""]


async def handle_add_sentences(update: Update, context: CallbackContext) -> int:
    """Handle adding new sentences."""
    await log_received(update, "message")

    sentences = get_sentences(context.chat_data)
    text, translations = split_translations(update.message.text or "")
    try:
        added = await asyncio.to_thread(parse_sentences, text, translations, list(sentences))
    except ValidationError as e:
        await update.message.reply_text(str(e), reply_markup=InlineKeyboardMarkup([KB_BACK_TO_MENU]))
        return ADDING_SENTENCES

    sentences.extend(added)
    if not added:
        message = "Nothing to add, these sentences are already in the list.\n"
    else:
        message = f"Added {len(added)} sentence{'s' if len(added) > 1 else ''}!\n"
    message += f"Sentences ready: {len(sentences)}\n\nSend more or start practising."

    await update.message.reply_text(
        message,
        reply_markup=InlineKeyboardMarkup([
            [InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu"),
             InlineKeyboardButton(START_PRACTICE, callback_data="start_practice")],
        ]),
    )
    return ADDING_SENTENCES


async def handle_demo(update: Update, context: CallbackContext) -> int:
    """Replace the sentence list with the built-in demo set."""
    await log_received(update, "demo")

    context.chat_data["sentences"] = demo_sentences()
    await show(
        update,
        f"📚 Loaded {len(context.chat_data['sentences'])} demo sentences.",
        reply_markup=InlineKeyboardMarkup([
            [InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu"),
             InlineKeyboardButton(START_PRACTICE, callback_data="start_practice")],
        ]),
    )
    return MAIN_MENU


async def clear_sentences(update: Update, context: CallbackContext) -> int:
    context.chat_data["sentences"] = []
    return await handle_start(update, context)


async def start_practice(update: Update, context: CallbackContext) -> int:
    """Show the pairing intro once, then start a session."""
    chat_id = update.effective_chat.id
    if not get_sentences(context.chat_data):
        await show(
            update,
            "Add at least one sentence first!",
            reply_markup=InlineKeyboardMarkup([
                [InlineKeyboardButton(ADD_SENTENCES, callback_data="add_sentences"),
                 InlineKeyboardButton(DEMO_SENTENCES, callback_data="load_demo")],
                KB_BACK_TO_MENU,
            ]),
        )
        return MAIN_MENU

    db = SessionLocal()
    try:
        seen = PreferenceService(db).has_seen_pairing_intro(chat_id)
    finally:
        db.close()

    if not seen:
        await show(
            update,
            PAIRING_INTRO,
            reply_markup=InlineKeyboardMarkup([
                [InlineKeyboardButton("👍 Got it", callback_data="intro_ok")],
                [InlineKeyboardButton("🙈 Don't show again", callback_data="intro_never")],
            ]),
        )
        return MAIN_MENU

    return await start_session(update, context)


async def handle_intro(update: Update, context: CallbackContext) -> int:
    if update.callback_query.data == "intro_never":
        db = SessionLocal()
        try:
            PreferenceService(db).mark_pairing_intro_seen(update.effective_chat.id)
        finally:
            db.close()
    return await start_session(update, context)


async def start_timer(context: CallbackContext, chat_id: int, controller: SessionController) -> None:
    """Start the session countdown when the learner switched it on."""
    if not controller.config.timer.enabled:
        await timer_service.stop(chat_id)
        return

    chat_data = context.chat_data
    bot = context.bot

    async def on_expire() -> None:
        async with get_lock(chat_data):
            if chat_data.get("controller") is not controller or controller.phase is SessionPhase.COMPLETED:
                return
            summary = controller.expire()
        get_speech_tracker(chat_data).cancel()
        await bot.send_message(chat_id, "⏰ Time is up!")
        await send_results(bot, chat_id, chat_data, summary)

    async def on_tick(remaining: int) -> None:
        # Every few seconds, then every second near the end
        if remaining <= 0 or (remaining % TIMER_REFRESH_SECONDS and remaining > TIMER_FINAL_SECONDS):
            return
        message_id = chat_data.get("stage_message_id")
        if message_id is None or chat_data.get("controller") is not controller:
            return
        if controller.phase is not SessionPhase.IN_STAGE:
            return
        view = controller.current_view()
        tray: TileTray = chat_data["tray"]
        try:
            await bot.edit_message_text(
                stage_text(view, tray, remaining),
                chat_id=chat_id,
                message_id=message_id,
                reply_markup=stage_keyboard(view, tray),
            )
        except BadRequest as e:
            logger.debug(f"Countdown not refreshed: {e}")

    await timer_service.start(chat_id, controller.config.timer.seconds, on_expire, on_tick)


async def start_session(update: Update, context: CallbackContext) -> int:
    """Start a session with the chat's sentences and settings."""
    chat_id = update.effective_chat.id
    try:
        config = SessionConfig.from_raw(**get_raw_config(context.chat_data))
    except ConfigurationError as e:
        logger.warning(f"Invalid settings for chat {chat_id}: {e}")
        await show(update, f"⚠️ {e}", reply_markup=InlineKeyboardMarkup([KB_BACK_TO_MENU]))
        return MAIN_MENU

    controller = SessionController(get_sentences(context.chat_data), config)
    async with get_lock(context.chat_data):
        try:
            view = controller.start()
        except ValidationError as e:
            await show(update, str(e), reply_markup=InlineKeyboardMarkup([KB_BACK_TO_MENU]))
            return MAIN_MENU
        cancel_advance(context.chat_data)
        previous = context.chat_data.get("controller")
        if previous is not None and previous.is_active:
            previous.expire()
        context.chat_data["controller"] = controller
        context.chat_data["tray"] = TileTray(view.tiles)
        get_speech_tracker(context.chat_data).cancel()

    await start_timer(context, chat_id, controller)
    await render_stage(update, context)
    return PRACTICE


def active_controller(context: CallbackContext) -> Optional[SessionController]:
    controller = context.chat_data.get("controller")
    if controller is None or not controller.is_active:
        return None
    return controller


async def handle_tray(update: Update, context: CallbackContext) -> int:
    """Place a tile, undo the last one or clear the slots."""
    query = update.callback_query
    controller = active_controller(context)
    if controller is None or controller.phase is not SessionPhase.IN_STAGE:
        await query.answer()
        return PRACTICE if controller else MAIN_MENU

    tray: TileTray = context.chat_data["tray"]
    if query.data == "tray_undo":
        changed = tray.undo()
    elif query.data == "tray_reset":
        changed = bool(tray.placed)
        tray.reset()
    else:
        changed = tray.place(int(query.data.split("_", 1)[1]))

    await query.answer()
    if changed:
        await render_stage(update, context)
    return PRACTICE


async def handle_submit(update: Update, context: CallbackContext) -> int:
    """Check the placed tiles."""
    controller = active_controller(context)
    if controller is None:
        await send_popup_message(update, "There is no exercise in progress.")
        return MAIN_MENU

    async with get_lock(context.chat_data):
        result = controller.submit(context.chat_data["tray"].slots())
    return await apply_result(update, context, controller, result)


async def apply_result(update: Update, context: CallbackContext, controller: SessionController,
                       result: SubmissionResult) -> int:
    """Show the outcome of a submission or a spoken answer."""
    outcome = result.outcome
    if outcome is SubmissionOutcome.IGNORED:
        if update.callback_query:
            await update.callback_query.answer()
        return PRACTICE

    if outcome is SubmissionOutcome.REJECTED_INCOMPLETE:
        await send_popup_message(update, result.message)
        return PRACTICE

    if update.callback_query:
        await update.callback_query.answer()

    if outcome is SubmissionOutcome.WRONG:
        await render_stage(update, context, note=result.message)
        return PRACTICE

    if outcome is SubmissionOutcome.LIMIT_REACHED:
        await show(
            update,
            result.message,
            reply_markup=InlineKeyboardMarkup([
                [InlineKeyboardButton(NEXT, callback_data="skip")],
                KB_BACK_TO_MENU,
            ]),
        )
        return PRACTICE

    await show(update, f"{result.message}\n\n{result.record.sentence_text if result.record else ''}".strip())
    schedule_advance(update, context, controller, result)
    return PRACTICE


def cancel_advance(chat_data: MutableMapping[str, Any]) -> None:
    task = chat_data.pop("advance_task", None)
    if task is not None and not task.done():
        task.cancel()


def schedule_advance(update: Update, context: CallbackContext, controller: SessionController,
                     result: SubmissionResult) -> asyncio.Task:
    """Play the sentence, pause and move on in the background so the handler returns at once."""
    chat_data = context.chat_data

    async def run() -> None:
        try:
            if result.speak and SpeechService.allows_playback(controller.config.tts_mode, after_correct=True):
                await send_speech(update, result.speak, notify=False)
            await asyncio.sleep(result.advance_after or 0)
            async with get_lock(chat_data):
                controller.advance()
            await continue_session(update, context, controller)
        except asyncio.CancelledError:
            logger.debug(f"Advance cancelled for chat {update.effective_chat.id}")
            raise
        except Exception as e:
            logger.error(f"Error moving to the next item: {e}", exc_info=e)
            monitoring.error_count.labels("advance").inc()

    cancel_advance(chat_data)
    chat_data["advance_task"] = asyncio.create_task(run())
    return chat_data["advance_task"]


async def continue_session(update: Update, context: CallbackContext, controller: SessionController) -> int:
    """Show the next item, or the results once the session is over."""
    chat_id = update.effective_chat.id
    if context.chat_data.get("controller") is not controller:
        return PRACTICE
    get_speech_tracker(context.chat_data).cancel()

    if controller.phase is SessionPhase.COMPLETED:
        if controller.state.timed_out:
            # Results were already sent on expiry
            return MAIN_MENU
        await timer_service.stop(chat_id)
        await send_results(context.bot, chat_id, context.chat_data, controller.summary())
        return MAIN_MENU

    context.chat_data["tray"] = TileTray(controller.current_view().tiles)
    await render_stage(update, context)
    return PRACTICE


async def handle_skip(update: Update, context: CallbackContext) -> int:
    """Move on after the answer was revealed."""
    await log_received(update, "skip")

    controller = active_controller(context)
    if controller is None:
        await update.effective_message.reply_text("There is no exercise in progress.")
        return MAIN_MENU

    async with get_lock(context.chat_data):
        if controller.phase is not SessionPhase.AWAITING_SKIP:
            await update.effective_message.reply_text("You can skip once the answer has been shown.")
            return PRACTICE
        controller.skip()
    return await continue_session(update, context, controller)


async def handle_hint(update: Update, context: CallbackContext) -> int:
    """Send the next hint level for the current item."""
    await log_received(update, "hint")

    controller = active_controller(context)
    async with get_lock(context.chat_data):
        hint = controller.request_hint() if controller else None

    if hint is None:
        await send_popup_message(update, "Hints are available while you solve a sentence.")
        return PRACTICE if controller else MAIN_MENU

    if update.callback_query:
        await update.callback_query.answer()
    await update.effective_message.reply_text(hint)
    return PRACTICE


async def send_speech(update: Update, text: str, notify: bool = True) -> None:
    """Read a sentence aloud as an audio message."""
    try:
        audio = await speech_service.speak(text)
    except EnvironmentUnavailableError as e:
        logger.warning(f"Speech playback unavailable: {e}")
        monitoring.error_count.labels("tts").inc()
        if notify:
            await send_popup_message(update, str(e))
        return

    try:
        await update.effective_message.reply_audio(audio=audio, filename="sentence.mp3", title=text)
    except TelegramError as e:
        logger.error(f"Error sending audio: {e}")
        monitoring.error_count.labels("telegram").inc()


async def handle_speak(update: Update, context: CallbackContext) -> int:
    """Read the current sentence aloud on request."""
    controller = active_controller(context)
    text = controller.request_speak() if controller else None
    if text is None:
        await send_popup_message(update, "Listening is only available in the \"any time\" mode.")
        return PRACTICE if controller else MAIN_MENU

    if update.callback_query:
        await update.callback_query.answer()
    await send_speech(update, text)
    return PRACTICE


async def handle_say_it(update: Update, context: CallbackContext) -> int:
    """Start a spoken answer; a newer attempt replaces an older one."""
    controller = active_controller(context)
    if controller is None or controller.phase is not SessionPhase.IN_STAGE:
        return PRACTICE if controller else MAIN_MENU

    token = get_speech_tracker(context.chat_data).begin()
    context.chat_data["speech_token"] = token
    await update.effective_message.reply_text(
        "🎤 Say the whole sentence!\n\nType it exactly as you would say it and send it."
    )
    return PRACTICE


async def handle_practice_message(update: Update, context: CallbackContext) -> int:
    """Text during practice is a spoken answer when an attempt is open."""
    await log_received(update, "speech")

    controller = active_controller(context)
    tracker = get_speech_tracker(context.chat_data)
    token = context.chat_data.get("speech_token")
    if controller is None or tracker.active is None or token is None:
        await update.message.reply_text(
            f"Use the tile buttons to build the answer, or press {SAY_IT} first.",
        )
        return PRACTICE if controller else MAIN_MENU

    if not tracker.finish(token):
        return PRACTICE

    async with get_lock(context.chat_data):
        result = controller.on_speech_final(update.message.text or "")
    return await apply_result(update, context, controller, result)


async def handle_voice(update: Update, context: CallbackContext) -> int:
    """Voice notes cannot be transcribed here; ask for the typed transcript instead."""
    await log_received(update, "voice")

    get_speech_tracker(context.chat_data).cancel()
    monitoring.error_count.labels("speech_recognition").inc()
    await update.message.reply_text(
        "🎤 Speech recognition is not available right now.\n"
        f"Press {SAY_IT} and type what you said instead."
    )
    return PRACTICE


async def send_results(bot: Bot, chat_id: int, chat_data: MutableMapping[str, Any], summary: SessionSummary) -> None:
    """Send the result screen and the downloadable report."""
    chat_data["summary"] = summary
    report = ReportService(summary)

    message = (f"{summary.title}\n\n"
               f"Accuracy: {summary.accuracy}% ({summary.correct_count}/{summary.total_items})\n"
               f"Wrong attempts: {summary.wrong_attempts}\n"
               f"Hints used: {summary.hints_used}\n")
    if summary.timed_out:
        message += "⏰ Finished by the timer\n"
    message += f"\n{report.report.diagnosis}"

    await bot.send_message(
        chat_id,
        message,
        reply_markup=InlineKeyboardMarkup([
            [InlineKeyboardButton(RESTART, callback_data="restart"),
             InlineKeyboardButton(WRONG_SENTENCES, callback_data="wrong")],
            [InlineKeyboardButton(COPY_REPORT, callback_data="copy_report")],
            KB_BACK_TO_MENU,
        ]),
    )

    try:
        await asyncio.to_thread(report.write_markdown, settings.paths.reports_dir / str(chat_id))
    except OSError as e:
        logger.warning(f"Error saving report: {e}")
        monitoring.error_count.labels("report_save").inc()

    try:
        await bot.send_document(
            chat_id,
            document=report.markdown().encode("utf-8"),
            filename=report.filename,
            caption="📄 Full report",
        )
    except TelegramError as e:
        logger.warning(f"Error sending report document: {e}")
        monitoring.error_count.labels("report_upload").inc()
        for part in split_message(report.plain_text()):
            await bot.send_message(chat_id, part)


async def handle_restart(update: Update, context: CallbackContext) -> int:
    """Practise the same sentences again with the same settings."""
    await log_received(update, "restart")

    controller: Optional[SessionController] = context.chat_data.get("controller")
    if controller is None:
        return await start_practice(update, context)

    async with get_lock(context.chat_data):
        cancel_advance(context.chat_data)
        view = controller.restart()
        context.chat_data["tray"] = TileTray(view.tiles)
        get_speech_tracker(context.chat_data).cancel()

    await start_timer(context, update.effective_chat.id, controller)
    await render_stage(update, context)
    return PRACTICE


async def handle_wrong(update: Update, context: CallbackContext) -> int:
    """List the sentences of the last session that went wrong."""
    await log_received(update, "wrong")

    summary: Optional[SessionSummary] = context.chat_data.get("summary")
    if summary is None:
        await update.effective_message.reply_text("Finish a session first!")
        return MAIN_MENU

    text = ReportService(summary).wrong_sentences_text()
    if not text:
        await update.effective_message.reply_text("🎉 No wrong sentences!")
    else:
        await update.effective_message.reply_text(f"📋 Sentences to review:\n\n{text}")
    return MAIN_MENU


async def handle_copy_report(update: Update, context: CallbackContext) -> int:
    """Send the last report as plain text, ready to copy."""
    summary: Optional[SessionSummary] = context.chat_data.get("summary")
    if summary is None:
        await update.effective_message.reply_text("Finish a session first!")
        return MAIN_MENU

    for part in split_message(ReportService(summary).plain_text()):
        await update.effective_message.reply_text(part)
    return MAIN_MENU


def on_off(value: bool) -> str:
    return "on" if value else "off"


async def show_settings(update: Update, context: CallbackContext) -> int:
    """Show settings menu."""
    raw = get_raw_config(context.chat_data)
    stages = set(raw["selected_stages"])
    limit = raw["attempt_limit"]
    timer = f"{raw['timer_seconds']}s" if raw["timer_enabled"] else "off"

    keyboard = [
        [InlineKeyboardButton(f"{'✅' if int(stage) in stages else '⬜'} {int(stage)}. {stage.label}",
                              callback_data=f"set_stage_{int(stage)}") for stage in Stage],
        [InlineKeyboardButton(f"🎲 Random order: {on_off(raw['random_order'])}", callback_data="set_random")],
        [InlineKeyboardButton(f"🔁 Order: {'stage by stage' if raw['progression_mode'] == 'cycle' else 'sentence by sentence'}",
                              callback_data="set_mode")],
        [InlineKeyboardButton(f"🎯 Attempt limit: {on_off(bool(limit))}", callback_data="set_limit_toggle")]
        + ([InlineKeyboardButton(f"🔢 Tries: {limit}", callback_data="settings_limit")] if limit else []),
        [InlineKeyboardButton(f"⏱️ Timer: {timer}", callback_data="settings_timer")],
        [InlineKeyboardButton(f"🔊 Listening: {TTS_LABELS[TTSMode(raw['tts_mode'])]}", callback_data="set_tts")],
        KB_BACK_TO_MENU,
    ]
    await show(
        update,
        "⚙️ Settings\n\n"
        "Stages to practise, order and limits apply to the next session.",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )
    return MAIN_MENU


async def show_limit_menu(update: Update, context: CallbackContext) -> int:
    choices = range(settings.session.min_attempt_limit, settings.session.max_attempt_limit + 1)
    keyboard = [[InlineKeyboardButton(str(n), callback_data=f"set_limit_{n}") for n in choices],
                [InlineKeyboardButton(msg_back_to(SETTINGS), callback_data="settings")]]
    await show(
        update,
        "🎯 Attempt limit\n\nAfter this many wrong tries the answer is shown and you move on.",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )
    return MAIN_MENU


async def show_timer_menu(update: Update, context: CallbackContext) -> int:
    keyboard = [[InlineKeyboardButton(format_remaining(n) if n else "off", callback_data=f"set_timer_{n}")
                 for n in TIMER_CHOICES],
                [InlineKeyboardButton(msg_back_to(SETTINGS), callback_data="settings")]]
    await show(
        update,
        "⏱️ Timer\n\nThe session ends when the time is up.",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )
    return MAIN_MENU


async def handle_set_option(update: Update, context: CallbackContext) -> int:
    """Apply a settings button."""
    data = update.callback_query.data
    raw = get_raw_config(context.chat_data)

    if data.startswith("set_stage_"):
        stage = int(data.rsplit("_", 1)[1])
        stages = set(raw["selected_stages"])
        if stage in stages and len(stages) == 1:
            await send_popup_message(update, "Keep at least one stage selected.")
            return MAIN_MENU
        stages ^= {stage}
        raw["selected_stages"] = sorted(stages)
    elif data == "set_random":
        raw["random_order"] = not raw["random_order"]
    elif data == "set_mode":
        raw["progression_mode"] = "focus" if raw["progression_mode"] == "cycle" else "cycle"
    elif data == "set_tts":
        modes = [mode.value for mode in TTSMode]
        raw["tts_mode"] = modes[(modes.index(raw["tts_mode"]) + 1) % len(modes)]
    elif data == "set_limit_toggle":
        raw["attempt_limit"] = 0 if raw["attempt_limit"] else settings.session.attempt_limit
    elif data.startswith("set_limit_"):
        raw["attempt_limit"] = int(data.rsplit("_", 1)[1])
    elif data.startswith("set_timer_"):
        seconds = int(data.rsplit("_", 1)[1])
        raw["timer_enabled"] = seconds > 0
        if seconds > 0:
            raw["timer_seconds"] = seconds

    await update.callback_query.answer()
    logger.info(f"Settings for chat {update.effective_chat.id}: {raw}")
    return await show_settings(update, context)


async def handle_share(update: Update, context: CallbackContext) -> int:
    """Send a code that loads the same sentences and settings elsewhere."""
    await log_received(update, "share")

    sentences = get_sentences(context.chat_data)
    if not sentences:
        await update.effective_message.reply_text("Add at least one sentence first!")
        return MAIN_MENU
    try:
        config = SessionConfig.from_raw(**get_raw_config(context.chat_data))
    except ConfigurationError as e:
        await update.effective_message.reply_text(f"⚠️ {e}")
        return MAIN_MENU

    command = f"/load {encode_share_payload(sentences, config)}"
    if len(command) > TELEGRAM_MESSAGE_LIMIT:
        await update.effective_message.reply_text("⚠️ Too many sentences for one share code. Clear some and try again.")
        return MAIN_MENU

    await update.effective_message.reply_text(
        f"🔗 Share these {len(sentences)} sentences\n\n"
        "Anyone who sends the command below to this bot gets the same sentences and settings."
    )
    await update.effective_message.reply_text(command)
    return MAIN_MENU


async def handle_load(update: Update, context: CallbackContext) -> int:
    """Load sentences and settings from a share code."""
    await log_received(update, "load")

    code = "".join(context.args or [])
    if not code:
        await update.message.reply_text("Send the code like this: /load <code>")
        return MAIN_MENU

    shared, error = decode_or_default(code)
    if error:
        await update.message.reply_text(f"❌ This share code could not be read.\n{error}")
        return MAIN_MENU
    if not shared.sentences:
        await update.message.reply_text("❌ This share code has no sentences.")
        return MAIN_MENU

    context.chat_data["sentences"] = list(shared.sentences)
    context.chat_data["config"] = config_to_raw(shared.config)
    await update.message.reply_text(
        f"✅ Loaded {len(shared.sentences)} sentences with their settings.",
        reply_markup=InlineKeyboardMarkup([
            [InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu"),
             InlineKeyboardButton(START_PRACTICE, callback_data="start_practice")],
        ]),
    )
    return MAIN_MENU


async def handle_error(update: object, context: CallbackContext) -> None:
    """Log errors raised by handlers."""
    error = context.error
    monitoring.error_count.labels(type(error).__name__).inc()
    logger.error(f"Error while handling update: {error}", exc_info=error)
    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text("Something went wrong. Please try again or /start.")
        except TelegramError as e:
            logger.warning(f"Error sending error message: {e}")
