import os
import sys
import logging

from time import time
from functools import wraps
from collections import defaultdict
from typing import Any, Callable, Dict, Optional, Tuple

import click
from flask import Flask, request, jsonify

from config import CONFIG, ENV_VARS, get_error_message
from errors import BotError, DeliveryError, StorageError
from forms import ReportForm
from handlers import extract_report, is_evangelism_report
from reports import (
    generate_all_group_reports,
    generate_church_report,
    generate_group_report,
    render_group_report,
    report_filename,
    save_report_pdf,
)
from services import get_narrative_generator, send_document, send_message
from storage import JsonSessionStore, ReportStore
from utils import (
    format_saved_confirmation,
    format_summary_message,
    format_validation_errors,
    get_period_label,
    parse_month,
)
from validator import validate_report

# --- Logger Setup ---
logging.basicConfig(
    level=getattr(logging, str(CONFIG["LOG_LEVEL"]).upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("EvangelismBot")


def log_event(event: str, **kwargs) -> None:
    """Structured log line: {"event": ..., **context}"""
    logger.info({"event": event, **kwargs})


def validate_environment() -> None:
    """Fail fast when a required variable is missing"""
    for var in ENV_VARS["required"]:
        if not CONFIG.get(var):
            raise EnvironmentError(f"Missing required environment variable: {var}")


# Rate limiting decorator
def rate_limit(max_calls: int, time_window: int) -> Callable:
    """
    Decorator to rate limit function calls per chat
    max_calls: maximum number of calls allowed
    time_window: time window in seconds
    """
    def decorator(func):
        call_times = defaultdict(list)

        @wraps(func)
        def wrapper(chat_id: str, *args, **kwargs):
            current_time = time()
            call_times[chat_id] = [t for t in call_times[chat_id] if current_time - t < time_window]

            if len(call_times[chat_id]) >= max_calls:
                log_event("rate_limited", chat_id=chat_id)
                try:
                    send_message(chat_id, f"⚠️ {get_error_message('rate_limited')}")
                except DeliveryError as e:
                    log_event("rate_limit_notice_failed", chat_id=chat_id, error=str(e))
                return "rate_limited", 429

            call_times[chat_id].append(current_time)
            return func(chat_id, *args, **kwargs)

        return wrapper
    return decorator


# Initialize Flask app
app = Flask(__name__)

report_store = ReportStore(CONFIG["DATABASE_PATH"])
report_store.init_db()
session_store = JsonSessionStore(CONFIG["SESSION_FILE"])
report_form = ReportForm(session_store, report_store)


# --- Command Handlers ---
COMMAND_HANDLERS: Dict[str, Callable[[str, Dict[str, Any], str], None]] = {}


def command(name: str) -> Callable:
    """Decorator for registering command handlers"""
    def decorator(func: Callable) -> Callable:
        COMMAND_HANDLERS[name] = func
        return func
    return decorator


def sender_mention(message: Dict[str, Any]) -> str:
    sender = message.get("from", {})
    if sender.get("username"):
        return f"@{sender['username']}"
    return sender.get("first_name", "")


def deliver_form_result(chat_id: str, result: Dict[str, Any]) -> None:
    """Send form replies and post a submitted report to its assembly group"""
    for reply in result["replies"]:
        send_message(chat_id, reply)

    if result["report_id"] and result["group_chat_id"]:
        try:
            send_message(result["group_chat_id"], result["group_message"])
            report_store.mark_report_posted(result["report_id"])
            log_event("report_posted_to_group", report_id=result["report_id"], group_chat_id=result["group_chat_id"])
        except DeliveryError as e:
            log_event("report_group_post_failed", report_id=result["report_id"], error=str(e))


@command("evangelism")
def handle_evangelism(chat_id: str, message: Dict[str, Any], args: str) -> None:
    """Start the guided report form"""
    user_id = str(message.get("from", {}).get("id", chat_id))
    deliver_form_result(chat_id, report_form.start(user_id, reporter_phone=user_id))


@command("help")
def handle_help(chat_id: str, message: Dict[str, Any], args: str) -> None:
    """Show available commands"""
    trigger = CONFIG["REPORT_TRIGGER"]
    send_message(chat_id, "\n".join([
        f"🙏 *{CONFIG['CHURCH_NAME']} Evangelism Reports*",
        "",
        f"• *{CONFIG['FORM_TRIGGER']}* - submit a report step by step",
        "• *cancel* - cancel the report you are filling in",
        "• *help* - show this message",
        "",
        f"In your assembly group you can also post a message starting with *{trigger}*,",
        "or send *report YYYY-MM* to get the group's monthly summary.",
    ]))


@command("cancel")
def handle_cancel(chat_id: str, message: Dict[str, Any], args: str) -> None:
    user_id = str(message.get("from", {}).get("id", chat_id))
    if report_form.has_active_form(user_id):
        deliver_form_result(chat_id, report_form.process_response(user_id, "cancel"))
    else:
        send_message(chat_id, "There is no report in progress.")


@command("report")
def handle_report(chat_id: str, message: Dict[str, Any], args: str) -> None:
    """Generate the summary and PDF for this group's assembly"""
    assembly = report_store.get_assembly_by_chat_id(chat_id)
    if assembly is None:
        send_message(chat_id, f"❌ {get_error_message('unknown_group')}")
        return

    start_date = end_date = None
    if args.strip():
        month_range = parse_month(args)
        if month_range is None:
            send_message(chat_id, f"❌ {get_error_message('invalid_month')}")
            return
        start_date, end_date = month_range

    report = generate_group_report(
        report_store, assembly, start_date, end_date,
        voice=CONFIG["DEFAULT_VOICE"], generator=get_narrative_generator(),
    )
    summary = report["summary"]
    if summary["total_outreaches"] == 0:
        send_message(chat_id, get_error_message(
            "no_reports",
            assembly=assembly["name"],
            period=get_period_label(summary["start_date"], summary["end_date"]),
        ))
        return
    deliver_group_report(chat_id, report)


def deliver_group_report(chat_id: str, report: Dict[str, Any]) -> None:
    send_message(chat_id, format_summary_message(report["summary"]))
    send_document(
        chat_id,
        render_group_report(report),
        report_filename(report),
        caption=f"{report['summary']['group_name']} evangelism report, {report['summary']['period']}",
    )


def handle_group_report_submission(chat_id: str, message: Dict[str, Any], edited: bool = False) -> None:
    """Parse, validate and store an EVANGELISM REPORT posted in a group"""
    assembly = report_store.get_assembly_by_chat_id(chat_id)
    if assembly is None:
        log_event("report_from_unknown_group", chat_id=chat_id)
        send_message(chat_id, f"❌ {get_error_message('unknown_group')}")
        return

    message_id = str(message.get("message_id", ""))
    mention = sender_mention(message)

    report = extract_report(message.get("text", ""))
    result = validate_report(report)
    if not result["valid"]:
        # An invalid edit leaves the previously stored report in place
        send_message(chat_id, format_validation_errors(result["errors"], mention))
        return

    try:
        report_id = report_store.create_report(
            assembly["id"],
            report,
            source="group_message",
            reporter_phone=str(message.get("from", {}).get("id", "")),
            message_id=message_id,
            posted_to_group=True,
            replace_existing=edited,
        )
    except StorageError as e:
        log_event("group_report_save_failed", chat_id=chat_id, error=str(e))
        send_message(chat_id, f"❌ {get_error_message('save_failed')}")
        return

    log_event("group_report_saved", report_id=report_id, assembly=assembly["name"], edited=edited)
    send_message(chat_id, format_saved_confirmation(report, report_id, assembly["name"], mention))


def handle_group_report_retraction(chat_id: str, message: Dict[str, Any]) -> None:
    """An edit that removed the report trigger withdraws the stored report"""
    assembly = report_store.get_assembly_by_chat_id(chat_id)
    if assembly is None:
        return
    removed = report_store.delete_report_by_message_id(assembly["id"], str(message.get("message_id", "")))
    if removed:
        log_event("group_report_retracted", report_id=removed["id"], assembly=assembly["name"])
        send_message(chat_id, f"🗑️ Report #{removed['id']} has been withdrawn.")


def split_command(text: str) -> Tuple[str, str]:
    parts = text.strip().split(maxsplit=1)
    name = parts[0].lower().lstrip("/").split("@")[0] if parts else ""
    return name, parts[1] if len(parts) > 1 else ""


@rate_limit(max_calls=CONFIG["RATE_LIMIT_CALLS"], time_window=CONFIG["RATE_LIMIT_WINDOW"])
def handle_private_message(chat_id: str, message: Dict[str, Any]) -> Tuple[str, int]:
    """Route a private chat message to a command or the active form"""
    text = message.get("text", "")
    user_id = str(message.get("from", {}).get("id", chat_id))
    name, args = split_command(text)

    if name == CONFIG["FORM_TRIGGER"].lower():
        COMMAND_HANDLERS["evangelism"](chat_id, message, args)
    elif name in ("help", "start"):
        COMMAND_HANDLERS["help"](chat_id, message, args)
    elif report_form.has_active_form(user_id):
        deliver_form_result(chat_id, report_form.process_response(user_id, text))
    elif name == "cancel":
        COMMAND_HANDLERS["cancel"](chat_id, message, args)
    else:
        send_message(chat_id, f"Send *{CONFIG['FORM_TRIGGER']}* to submit a report, or *help* for more options.")
    return "ok", 200


@rate_limit(max_calls=CONFIG["RATE_LIMIT_CALLS"], time_window=CONFIG["RATE_LIMIT_WINDOW"])
def handle_group_message(chat_id: str, message: Dict[str, Any], edited: bool = False) -> Tuple[str, int]:
    """Group chats: report submissions and the report command, everything else ignored"""
    text = message.get("text", "")
    if is_evangelism_report(text):
        handle_group_report_submission(chat_id, message, edited)
        return "ok", 200
    if edited:
        handle_group_report_retraction(chat_id, message)
        return "ok", 200

    name, args = split_command(text)
    if name == "report":
        COMMAND_HANDLERS["report"](chat_id, message, args)
    return "ok", 200


# --- Routes ---
@app.route("/webhook", methods=["POST"])
def webhook() -> Tuple[str, int]:
    """Handle incoming webhook from Telegram"""
    chat_id: Optional[str] = None
    try:
        data = request.get_json(silent=True)
        if not data:
            log_event("webhook_invalid_data", error="No JSON data received")
            return "error", 400

        edited = "edited_message" in data and "message" not in data
        message = data.get("message") or data.get("edited_message")
        if not message or "chat" not in message:
            log_event("webhook_no_message", update_id=data.get("update_id"))
            return "ok", 200

        chat_id = str(message["chat"]["id"])
        if not message.get("text"):
            return "ok", 200

        log_event("webhook_received", chat_id=chat_id, chat_type=message["chat"].get("type"), edited=edited)
        if message["chat"].get("type") == "private":
            if edited:
                return "ok", 200
            return handle_private_message(chat_id, message)
        return handle_group_message(chat_id, message, edited)

    except Exception as e:
        log_event("webhook_error", error=str(e))
        if chat_id:
            try:
                send_message(chat_id, f"⚠️ {get_error_message('generic')}")
            except BotError as send_error:
                log_event("webhook_send_error", error=str(send_error))
        return "error", 500


@app.route("/reports/monthly", methods=["POST"])
def monthly_reports():
    """Generate and deliver reports for every assembly (cron trigger)"""
    payload = request.get_json(silent=True) or {}
    start_date = end_date = None
    if payload.get("month"):
        month_range = parse_month(str(payload["month"]))
        if month_range is None:
            return jsonify({"error": get_error_message("invalid_month")}), 400
        start_date, end_date = month_range

    voice = payload.get("voice") or CONFIG["DEFAULT_VOICE"]
    generator = get_narrative_generator()
    generated = generate_all_group_reports(report_store, start_date, end_date, voice=voice, generator=generator)

    results = []
    for report in generated:
        assembly = report["assembly"]
        delivered = False
        if assembly.get("chat_id"):
            try:
                deliver_group_report(assembly["chat_id"], report)
                delivered = True
            except DeliveryError as e:
                log_event("monthly_report_delivery_failed", assembly=assembly["name"], error=str(e))
        results.append({
            "assembly": assembly["name"],
            "period": report["summary"]["period"],
            "outreaches": report["summary"]["total_outreaches"],
            "narrative_source": report["narrative"]["source"],
            "delivered": delivered,
        })

    church = generate_church_report(report_store, start_date, end_date, voice=voice, generator=generator)
    church_delivered = []
    if church["summary"]["total_outreaches"] > 0:
        for admin_chat_id in CONFIG["ADMIN_CHAT_IDS"]:
            try:
                deliver_group_report(admin_chat_id, church)
                church_delivered.append(admin_chat_id)
            except DeliveryError as e:
                log_event("church_report_delivery_failed", chat_id=admin_chat_id, error=str(e))

    log_event("monthly_reports_completed", reports=len(results), church_delivered=len(church_delivered))
    return jsonify({
        "reports": results,
        "church": {
            "period": church["summary"]["period"],
            "outreaches": church["summary"]["total_outreaches"],
            "saved": church["summary"]["total_saved"],
            "healed": church["summary"]["total_healed"],
            "assemblies": church["summary"]["assemblies"],
            "narrative_source": church["narrative"]["source"],
            "delivered_to": church_delivered,
        },
    }), 200


# Health check endpoint
@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint for load balancers and monitoring"""
    return jsonify({
        "status": "healthy",
        "telegram_configured": bool(CONFIG["TELEGRAM_BOT_TOKEN"]),
        "ai_narrative": bool(get_narrative_generator()),
        "assemblies": len(report_store.get_all_assemblies()),
    }), 200


@app.route("/", methods=["GET"])
def index():
    """Root endpoint"""
    return jsonify({
        "name": "Evangelism Report Bot",
        "status": "running",
        "endpoints": ["/webhook", "/reports/monthly", "/health"]
    }), 200


# --- CLI ---
def _find_assembly(name: str) -> Dict[str, Any]:
    for assembly in report_store.get_all_assemblies():
        if assembly["name"].lower() == name.strip().lower():
            return assembly
    raise click.ClickException(f"Unknown assembly: {name}")


@app.cli.command("generate-report")
@click.option("--month", help="Month as YYYY-MM; defaults to the previous month")
@click.option("--assembly", "assembly_name", help="Only this assembly")
@click.option("--voice", default=None, help="first_person, third_person or neutral")
@click.option("--church", is_flag=True, help="Also write the all-assemblies roll-up")
def generate_report_command(month: Optional[str], assembly_name: Optional[str], voice: Optional[str], church: bool) -> None:
    """Write PDF reports to REPORTS_DIR"""
    start_date = end_date = None
    if month:
        month_range = parse_month(month)
        if month_range is None:
            raise click.BadParameter(get_error_message("invalid_month"), param_hint="--month")
        start_date, end_date = month_range

    generator = get_narrative_generator()
    if assembly_name:
        reports = [generate_group_report(report_store, _find_assembly(assembly_name), start_date, end_date, voice, generator)]
    else:
        reports = generate_all_group_reports(report_store, start_date, end_date, voice, generator)
    if church and reports:
        reports.append(generate_church_report(report_store, start_date, end_date, voice, generator))

    if not reports:
        click.echo("No reports found for the selected period.")
    for report in reports:
        click.echo(save_report_pdf(report, CONFIG["REPORTS_DIR"]))


@app.cli.command("add-assembly")
@click.argument("name")
@click.option("--chat-id", default=None, help="Telegram group chat id")
def add_assembly_command(name: str, chat_id: Optional[str]) -> None:
    assembly_id = report_store.create_assembly(name, chat_id)
    click.echo(f"Created assembly #{assembly_id}: {name}")


@app.cli.command("set-group-id")
@click.argument("name")
@click.argument("chat_id")
def set_group_id_command(name: str, chat_id: str) -> None:
    """Link an assembly to its Telegram group"""
    assembly = _find_assembly(name)
    report_store.update_assembly(assembly["id"], assembly["name"], chat_id)
    click.echo(f"{assembly['name']} now reports from chat {chat_id}")


@app.cli.command("remove-assembly")
@click.argument("name")
def remove_assembly_command(name: str) -> None:
    assembly = _find_assembly(name)
    report_store.delete_assembly(assembly["id"])
    click.echo(f"Removed {assembly['name']} and its reports")


# Start Flask server if running directly
if __name__ == "__main__":
    validate_environment()
    port = int(os.environ.get("PORT", 10000))
    app.run(host="0.0.0.0", port=port)
