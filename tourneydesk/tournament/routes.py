"""Routes for the tournament blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, request

from tourneydesk.auth.decorators import current_user_id, ensure_organizer, login_required
from tourneydesk.errors import ValidationError
from tourneydesk.match.services import FixtureService
from tourneydesk.utils import api_response, first_form_error, parse_datetime

from . import bp
from .forms import EditTournamentForm, TournamentForm
from .services import TournamentService

FIELD_MAP = {
    "name": "name",
    "sport": "sport",
    "format": "format",
    "start_date": "startDate",
    "end_date": "endDate",
    "registration_deadline": "registrationDeadline",
    "venue": "venue",
    "max_participants": "maxParticipants",
    "entry_fee": "entryFee",
    "description": "description",
    "rules": "rules",
}
DATE_FIELDS = ("start_date", "end_date", "registration_deadline")


def _form_data(form: Any) -> dict[str, Any]:
    """Map submitted form fields onto tournament document keys."""
    data = {}
    for field_name, key in FIELD_MAP.items():
        value = getattr(form, field_name).data
        if value is None or value == "":
            continue
        if field_name in DATE_FIELDS:
            value = parse_datetime(value)
        data[key] = value
    return data


def _managed_tournament(tournament_id: str) -> dict[str, Any]:
    tournament = TournamentService.get_tournament(firestore.client(), tournament_id)
    ensure_organizer(tournament)
    return tournament


@bp.route("/", methods=["POST"])
@login_required
def create_tournament() -> Any:
    """Create a new tournament in draft status."""
    form = TournamentForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    tournament = TournamentService.create_tournament(
        db, _form_data(form), current_user_id()
    )
    current_app.logger.info(f"Tournament {tournament['id']} created.")
    return api_response(
        tournament, message="Tournament created successfully.", status=201
    )


@bp.route("/", methods=["GET"])
def list_tournaments() -> Any:
    """List tournaments, filtered by status, sport or organizer."""
    tournaments = TournamentService.list_tournaments(
        firestore.client(),
        status=request.args.get("status") or None,
        sport=request.args.get("sport") or None,
        organizer_id=request.args.get("organizer") or None,
    )
    return api_response(tournaments, count=len(tournaments))


@bp.route("/<string:tournament_id>", methods=["GET"])
def view_tournament(tournament_id: str) -> Any:
    return api_response(
        TournamentService.get_tournament(firestore.client(), tournament_id)
    )


@bp.route("/<string:tournament_id>/edit", methods=["POST"])
@login_required
def edit_tournament(tournament_id: str) -> Any:
    """Update a tournament's details."""
    _managed_tournament(tournament_id)
    form = EditTournamentForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))
    tournament = TournamentService.update_tournament(
        firestore.client(), tournament_id, _form_data(form)
    )
    return api_response(tournament, message="Tournament updated successfully.")


@bp.route("/<string:tournament_id>/open", methods=["POST"])
@login_required
def open_tournament(tournament_id: str) -> Any:
    _managed_tournament(tournament_id)
    tournament = TournamentService.open_registration(firestore.client(), tournament_id)
    return api_response(tournament, message="Registration is open.")


@bp.route("/<string:tournament_id>/start", methods=["POST"])
@login_required
def start_tournament(tournament_id: str) -> Any:
    _managed_tournament(tournament_id)
    tournament = TournamentService.start_tournament(firestore.client(), tournament_id)
    return api_response(tournament, message="Tournament started.")


@bp.route("/<string:tournament_id>/complete", methods=["POST"])
@login_required
def complete_tournament(tournament_id: str) -> Any:
    """Finalize a tournament and return its final standings."""
    _managed_tournament(tournament_id)
    tournament = TournamentService.complete_tournament(firestore.client(), tournament_id)
    return api_response(
        tournament, message="Tournament completed and final standings calculated."
    )


@bp.route("/<string:tournament_id>/delete", methods=["POST"])
@login_required
def delete_tournament(tournament_id: str) -> Any:
    _managed_tournament(tournament_id)
    removed = TournamentService.delete_tournament(firestore.client(), tournament_id)
    current_app.logger.info(f"Tournament {tournament_id} deleted ({removed} documents).")
    return api_response(message="Tournament deleted successfully.")


@bp.route("/<string:tournament_id>/capacity", methods=["POST"])
@login_required
def sync_capacity(tournament_id: str) -> Any:
    """Recount approved registrations into currentParticipants."""
    _managed_tournament(tournament_id)
    tournament = TournamentService.sync_capacity(firestore.client(), tournament_id)
    return api_response(tournament, message="Participant count updated.")


@bp.route("/<string:tournament_id>/standings", methods=["GET"])
def standings(tournament_id: str) -> Any:
    """Current standings computed from the tournament's matches."""
    table = FixtureService(firestore.client()).get_standings(tournament_id)
    return api_response(table, count=len(table))
