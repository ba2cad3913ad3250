"""Routes for the fixtures blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, request

from tourneydesk.auth.decorators import ensure_organizer, login_required
from tourneydesk.bracket import MatchResult, SetScore
from tourneydesk.errors import InvalidResult, ValidationError
from tourneydesk.notifications.services import FirestoreNotifier
from tourneydesk.utils import api_response, first_form_error, parse_datetime

from . import bp
from .forms import GenerateForm, ResultForm, ScheduleForm, StatusForm
from .services import FixtureService


def _service() -> FixtureService:
    db = firestore.client()
    return FixtureService.from_config(db, current_app.config, FirestoreNotifier(db))


def _authorize_match(service: FixtureService, match_id: str) -> dict[str, Any]:
    """Load a match and check the session user organizes its tournament."""
    match = service.get_fixture(match_id)
    ensure_organizer(service.get_tournament(match["tournamentId"]))
    return match


def _parse_sets(raw: Any) -> list[SetScore]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidResult("Sets must be a list of scores.")
    sets = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise InvalidResult(
                "Each set needs participant1_score and participant2_score."
            )
        sets.append(
            SetScore(entry.get("participant1_score"), entry.get("participant2_score"))
        )
    return sets


@bp.route("/generate/<string:tournament_id>", methods=["POST"])
@login_required
def generate_fixtures(tournament_id: str) -> Any:
    """Generate (or regenerate) the bracket for a tournament."""
    service = _service()
    ensure_organizer(service.get_tournament(tournament_id))
    form = GenerateForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    matches = service.generate_bracket(tournament_id, confirm=bool(form.confirm.data))
    current_app.logger.info(
        f"Bracket generated for {tournament_id} with {len(matches)} matches."
    )
    return api_response(
        matches,
        message=f"Generated {len(matches)} fixtures.",
        status=201,
        count=len(matches),
    )


@bp.route("/tournament/<string:tournament_id>", methods=["GET"])
@login_required
def list_fixtures(tournament_id: str) -> Any:
    """List a tournament's fixtures, optionally filtered by round and status."""
    round_number = request.args.get("round", type=int)
    status = request.args.get("status") or None
    matches = _service().list_fixtures(tournament_id, round_number, status)
    return api_response(matches, count=len(matches))


@bp.route("/tournament/<string:tournament_id>/bracket", methods=["GET"])
@login_required
def view_bracket(tournament_id: str) -> Any:
    """Return the bracket grouped by round."""
    return api_response(_service().get_bracket(tournament_id))


@bp.route("/<string:match_id>", methods=["GET"])
@login_required
def view_fixture(match_id: str) -> Any:
    return api_response(_service().get_fixture(match_id))


@bp.route("/<string:match_id>/result", methods=["POST"])
@login_required
def record_result(match_id: str) -> Any:
    """Record or correct a match result.

    The result is committed even when winner progression fails afterwards;
    that failure is reported under "progression" with a 200 response.
    """
    service = _service()
    _authorize_match(service, match_id)

    form = ResultForm()
    if not form.validate_on_submit():
        raise InvalidResult(first_form_error(form))

    payload = request.get_json(silent=True) or {}
    forfeiting_side = form.forfeiting_side.data
    result = MatchResult(
        participant1_score=form.participant1_score.data,
        participant2_score=form.participant2_score.data,
        notes=form.notes.data or None,
        sets=_parse_sets(payload.get("sets")),
        overtime=bool(form.overtime.data),
        forfeit=bool(form.forfeit.data) or forfeiting_side is not None,
        forfeiting_side=forfeiting_side,
    )
    outcome = service.record_result(
        match_id, result, correction=bool(form.correction.data)
    )

    if outcome.progression_error is not None:
        current_app.logger.error(
            f"Progression failed after result on {match_id}: "
            f"{outcome.progression_error.message}"
        )
        progression = outcome.progression_error.to_dict()
        message = "Result recorded, but the winner could not be advanced."
    else:
        progression = {"success": True}
        message = "Result recorded."
    return api_response(outcome.match, message=message, progression=progression)


@bp.route("/<string:match_id>/progress", methods=["POST"])
@login_required
def progress_fixture(match_id: str) -> Any:
    """Re-run winner progression for a completed elimination match."""
    service = _service()
    _authorize_match(service, match_id)
    filled = service.progress_winner(match_id)
    message = "Winner advanced." if filled else "Winner was already advanced."
    return api_response(filled, message=message)


@bp.route("/<string:match_id>/status", methods=["POST"])
@login_required
def update_status(match_id: str) -> Any:
    service = _service()
    _authorize_match(service, match_id)
    form = StatusForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))
    match = service.update_status(match_id, form.status.data)
    return api_response(match, message="Match status updated.")


@bp.route("/<string:match_id>/schedule", methods=["POST"])
@login_required
def update_schedule(match_id: str) -> Any:
    """Reschedule or relocate a match and notify both sides."""
    service = _service()
    _authorize_match(service, match_id)
    form = ScheduleForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    try:
        scheduled_date = parse_datetime(form.scheduled_date.data)
    except ValueError as e:
        raise ValidationError("Scheduled date must be an ISO 8601 date.") from e

    match = service.update_schedule(
        match_id,
        scheduled_date=scheduled_date,
        venue=form.venue.data or None,
        court=form.court.data or None,
    )
    return api_response(match, message="Match schedule updated.")
