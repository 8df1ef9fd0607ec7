from datetime import date
from functools import wraps
from io import BytesIO

from flask import (
    Blueprint,
    Response,
    abort,
    current_app,
    flash,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    session,
    url_for,
)
from werkzeug.security import check_password_hash, generate_password_hash

from healthlog import db
from healthlog.ai import ask_assistant, summarize_stats
from healthlog.errors import (
    AssistantError,
    DuplicateDatesError,
    ImportFormatError,
    NoValidRowsError,
    PartialWriteError,
    RecordValidationError,
    StoreError,
)
from healthlog.importer import bulk_delete, run_import, submit_record
from healthlog.models import User
from healthlog.stats import HistoryQuery, build_dashboard, filter_records, weight_change
from healthlog.store import get_record_store
from healthlog.transfer import (
    detect_import_format,
    export_filename,
    export_json,
    export_workbook,
    parse_json_rows,
    parse_workbook_rows,
)

bp = Blueprint("main", __name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
FORM_DEFAULT_SCORE = 5


def normalize_email(value: str | None):
    if not value:
        return None
    return value.strip().lower()


def parse_record_ids(values: list[str]) -> list[int]:
    ids = []
    for value in values:
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            continue
    return ids


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if g.user is None:
            flash("Please log in first.", "error")
            return redirect(url_for("main.login", next=request.path))
        return view(*args, **kwargs)

    return wrapped


def load_history(today: date):
    query, problems = HistoryQuery.from_args(
        request.args,
        today,
        current_app.config.get("HISTORY_DEFAULT_DAYS", 30),
    )
    records = get_record_store().list_records(g.user.id)
    return query, problems, filter_records(records, query)


@bp.before_app_request
def load_logged_in_user():
    user_id = session.get("user_id")
    g.user = db.session.get(User, user_id) if user_id else None


@bp.app_context_processor
def inject_user():
    return {"current_user": g.get("user")}


@bp.get("/")
def index():
    if g.user is None:
        return render_template("index.html", is_authenticated=False)

    try:
        records = get_record_store().list_records(g.user.id)
    except StoreError as exc:
        flash(f"Loading records failed: {exc}", "error")
        records = []
    return render_template("index.html", is_authenticated=True, stats=build_dashboard(records))


@bp.route("/register", methods=["GET", "POST"])
def register():
    if g.user is not None:
        return redirect(url_for("main.index"))

    if request.method == "POST":
        full_name = (request.form.get("full_name") or "").strip()
        email = normalize_email(request.form.get("email"))
        password = request.form.get("password") or ""
        password_confirm = request.form.get("password_confirm") or ""

        if not email:
            flash("Email is required.", "error")
            return render_template("register.html")
        if len(password) < 8:
            flash("Password must be at least 8 characters.", "error")
            return render_template("register.html")
        if password != password_confirm:
            flash("Password confirmation does not match.", "error")
            return render_template("register.html")
        if User.query.filter_by(email=email).first():
            flash("An account with that email already exists.", "error")
            return render_template("register.html")

        user = User(
            full_name=full_name or None,
            email=email,
            password_hash=generate_password_hash(password),
        )
        db.session.add(user)
        db.session.commit()

        session.clear()
        session["user_id"] = user.id
        flash("Account created. Log your first record to get started.", "success")
        return redirect(url_for("main.record_form"))

    return render_template("register.html")


@bp.route("/login", methods=["GET", "POST"])
def login():
    if g.user is not None:
        return redirect(url_for("main.index"))

    if request.method == "POST":
        email = normalize_email(request.form.get("email"))
        password = request.form.get("password") or ""
        next_url = request.form.get("next") or request.args.get("next")

        user = User.query.filter_by(email=email).first() if email else None
        if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
            flash("Invalid email or password.", "error")
            return render_template("login.html", next=next_url)

        session.clear()
        session["user_id"] = user.id
        flash("Logged in.", "success")

        if next_url and next_url.startswith("/") and not next_url.startswith("//"):
            return redirect(next_url)
        return redirect(url_for("main.index"))

    return render_template("login.html", next=request.args.get("next"))


@bp.post("/logout")
@login_required
def logout():
    session.clear()
    flash("Logged out.", "success")
    return redirect(url_for("main.login"))


@bp.get("/records/new")
@login_required
def record_form():
    return render_template(
        "record_form.html",
        record=None,
        form_values={"date": date.today().isoformat()},
        default_score=FORM_DEFAULT_SCORE,
    )


@bp.post("/records/new")
@login_required
def record_save():
    try:
        saved = submit_record(get_record_store(), g.user.id, request.form)
    except RecordValidationError as exc:
        flash(str(exc), "error")
        return render_template(
            "record_form.html",
            record=None,
            form_values=request.form,
            default_score=FORM_DEFAULT_SCORE,
        ), 400
    except StoreError as exc:
        current_app.logger.warning("Saving record failed for user_id=%s: %s", g.user.id, exc)
        flash(f"Saving failed: {exc}", "error")
        return render_template(
            "record_form.html",
            record=None,
            form_values=request.form,
            default_score=FORM_DEFAULT_SCORE,
        ), 502

    flash(f"Record saved for {saved.date}.", "success")
    return redirect(url_for("main.index"))


@bp.route("/records/<int:record_id>/edit", methods=["GET", "POST"])
@login_required
def record_edit(record_id: int):
    store = get_record_store()
    record = store.get_record(g.user.id, record_id)
    if record is None:
        abort(404)

    if request.method == "POST":
        try:
            saved = submit_record(store, g.user.id, request.form, replace_id=record.id)
        except RecordValidationError as exc:
            flash(str(exc), "error")
            return render_template(
                "record_form.html",
                record=record,
                form_values=request.form,
                default_score=FORM_DEFAULT_SCORE,
            ), 400
        except StoreError as exc:
            current_app.logger.warning("Updating record %s failed for user_id=%s: %s", record_id, g.user.id, exc)
            flash(f"Saving failed: {exc}", "error")
            return redirect(url_for("main.record_edit", record_id=record_id))

        flash(f"Record updated for {saved.date}.", "success")
        return redirect(url_for("main.history"))

    return render_template(
        "record_form.html",
        record=record,
        form_values=record.to_row(),
        default_score=FORM_DEFAULT_SCORE,
    )


@bp.post("/records/<int:record_id>/delete")
@login_required
def record_delete(record_id: int):
    try:
        deleted = get_record_store().delete_one(g.user.id, record_id)
    except StoreError as exc:
        flash(f"Delete failed: {exc}", "error")
        return redirect(url_for("main.history"))
    if not deleted:
        abort(404)
    flash("Record deleted.", "success")
    return redirect(url_for("main.history"))


@bp.post("/records/bulk-delete")
@login_required
def records_bulk_delete():
    record_ids = parse_record_ids(request.form.getlist("record_ids"))
    if not record_ids:
        flash("Select at least one record to delete.", "error")
        return redirect(url_for("main.history"))

    try:
        deleted = bulk_delete(
            get_record_store(),
            g.user.id,
            record_ids,
            chunk_size=current_app.config.get("IMPORT_CHUNK_SIZE", 100),
        )
    except PartialWriteError as exc:
        current_app.logger.warning("Bulk delete partially failed for user_id=%s: %s", g.user.id, exc)
        flash(f"Bulk delete failed: {exc}", "error")
        return redirect(url_for("main.history"))
    except StoreError as exc:
        flash(f"Bulk delete failed: {exc}", "error")
        return redirect(url_for("main.history"))

    flash(f"Deleted {deleted} records.", "success")
    return redirect(url_for("main.history"))


@bp.get("/history")
@login_required
def history():
    today = date.today()
    try:
        query, problems, records = load_history(today)
    except StoreError as exc:
        flash(f"Loading records failed: {exc}", "error")
        query, problems = HistoryQuery.from_args({}, today, current_app.config.get("HISTORY_DEFAULT_DAYS", 30))
        records = []
    for message in problems:
        flash(message, "error")

    rows = [
        {"record": record, "change": weight_change(records, index)}
        for index, record in enumerate(records)
    ]
    return render_template(
        "history.html",
        rows=rows,
        query=query,
        show_weight=request.args.get("hide_weight") != "1",
        export_default_name=current_app.config.get("EXPORT_DEFAULT_FILENAME"),
    )


@bp.post("/records/import")
@login_required
def records_import():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        flash("Choose a JSON or Excel file to import.", "error")
        return redirect(url_for("main.history"))

    file_format = detect_import_format(upload.filename)
    if file_format is None:
        flash("Unsupported file type. Upload a .json or .xlsx file.", "error")
        return redirect(url_for("main.history"))

    content = upload.read()
    try:
        rows = parse_json_rows(content) if file_format == "json" else parse_workbook_rows(content)
        result = run_import(
            get_record_store(),
            g.user.id,
            rows,
            chunk_size=current_app.config.get("IMPORT_CHUNK_SIZE", 100),
        )
    except (ImportFormatError, NoValidRowsError, DuplicateDatesError) as exc:
        flash(str(exc), "error")
        return redirect(url_for("main.history"))
    except StoreError as exc:
        current_app.logger.warning("Import failed for user_id=%s: %s", g.user.id, exc)
        flash(f"Import failed: {exc}", "error")
        return redirect(url_for("main.history"))

    message = f"Imported {result.written} records."
    if result.skipped:
        message += f" Skipped {result.skipped} rows without a valid weight."
    if result.merged:
        message += f" Merged {result.merged} rows that repeated a date; the last row for each day was kept."
    flash(message, "success")
    return redirect(url_for("main.history"))


@bp.get("/records/export")
@login_required
def records_export():
    today = date.today()
    try:
        _, _, records = load_history(today)
    except StoreError as exc:
        flash(f"Export failed: {exc}", "error")
        return redirect(url_for("main.history"))

    if request.args.get("format") == "json":
        return Response(
            export_json(records),
            mimetype="application/json",
            headers={"Content-Disposition": "attachment; filename=records.json"},
        )

    filename = export_filename(
        request.args.get("filename"),
        current_app.config.get("EXPORT_DEFAULT_FILENAME") or "records",
    )
    return send_file(
        BytesIO(export_workbook(records)),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


@bp.route("/assistant", methods=["GET", "POST"])
@login_required
def assistant():
    answer = None
    prompt = ""
    if request.method == "POST":
        prompt = request.form.get("prompt") or ""
        try:
            context = None
            if request.form.get("include_stats"):
                context = summarize_stats(build_dashboard(get_record_store().list_records(g.user.id)))
            answer = ask_assistant(prompt, context=context)
        except (AssistantError, StoreError) as exc:
            flash(str(exc), "error")
    return render_template("assistant.html", prompt=prompt, answer=answer)


@bp.post("/assistant/ask")
@login_required
def assistant_ask():
    body = request.get_json(silent=True) if request.is_json else {}
    prompt = (body.get("prompt") if isinstance(body, dict) else None) or request.form.get("prompt")
    try:
        answer = ask_assistant(prompt or "")
    except AssistantError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400
    return jsonify({"ok": True, "answer": answer})
