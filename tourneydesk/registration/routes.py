"""Routes for the registration blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, request

from tourneydesk.auth.decorators import (
    current_user,
    current_user_id,
    ensure_organizer,
    login_required,
)
from tourneydesk.errors import ValidationError
from tourneydesk.tournament.services import TournamentService
from tourneydesk.utils import api_response, first_form_error

from . import bp
from .forms import (
    IndividualRegistrationForm,
    RegistrationStatusForm,
    TeamRegistrationForm,
)
from .services import RegistrationService

TOURNAMENT_SUMMARY_FIELDS = ("name", "sport", "startDate", "endDate", "venue", "entryFee")


def _registrant() -> dict[str, Any]:
    return {**current_user(), "uid": current_user_id()}


def _emergency_contact(form: Any) -> dict[str, str]:
    return {
        "name": form.emergency_contact_name.data,
        "phone": form.emergency_contact_phone.data,
        "relationship": form.emergency_contact_relationship.data,
    }


@bp.route("/individual", methods=["POST"])
@login_required
def register_individual() -> Any:
    """Register the session user for a tournament."""
    form = IndividualRegistrationForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    registration = RegistrationService.register_individual(
        firestore.client(),
        form.tournament_id.data,
        _registrant(),
        _emergency_contact(form),
        notes=form.notes.data or None,
    )
    current_app.logger.info(f"Individual registration {registration['id']} created.")
    return api_response(
        registration,
        message="Registration submitted. Use the payment reference for your transfer.",
        status=201,
    )


@bp.route("/team", methods=["POST"])
@login_required
def register_team() -> Any:
    """Register a team captained by the session user."""
    form = TeamRegistrationForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    payload = request.get_json(silent=True) or {}
    members = payload.get("teamMembers")
    if members is None:
        members = request.form.getlist("team_members")
    if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
        raise ValidationError("Team members must be a list of user ids.")

    registration = RegistrationService.register_team(
        firestore.client(),
        form.tournament_id.data,
        _registrant(),
        form.team_name.data,
        members,
        _emergency_contact(form),
        notes=form.notes.data or None,
    )
    current_app.logger.info(f"Team registration {registration['id']} created.")
    return api_response(
        registration,
        message="Team registration submitted. Use the payment reference for your transfer.",
        status=201,
    )


@bp.route("/tournament/<string:tournament_id>", methods=["GET"])
@login_required
def list_for_tournament(tournament_id: str) -> Any:
    """Registrations of a tournament, for its organizer."""
    db = firestore.client()
    ensure_organizer(TournamentService.get_tournament(db, tournament_id))
    registrations = RegistrationService.list_for_tournament(
        db, tournament_id, status=request.args.get("status") or None
    )
    return api_response(registrations, count=len(registrations))


@bp.route("/mine", methods=["GET"])
@login_required
def my_registrations() -> Any:
    registrations = RegistrationService.list_for_user(
        firestore.client(), current_user_id()
    )
    return api_response(registrations, count=len(registrations))


@bp.route("/<string:registration_id>", methods=["GET"])
@login_required
def view_registration(registration_id: str) -> Any:
    """A registration with its tournament summary.

    Visible to the captain, the team members and the tournament's organizer.
    """
    db = firestore.client()
    registration = RegistrationService.get_registration(db, registration_id)
    tournament = TournamentService.get_tournament(db, registration["tournamentId"])
    user_id = current_user_id()
    if user_id != registration.get("captainId") and user_id not in (
        registration.get("teamMembers") or []
    ):
        ensure_organizer(tournament)
    summary = {key: tournament.get(key) for key in TOURNAMENT_SUMMARY_FIELDS}
    return api_response(registration, tournament={"id": tournament["id"], **summary})


@bp.route("/<string:registration_id>/status", methods=["POST"])
@login_required
def update_status(registration_id: str) -> Any:
    """Approve or reject a registration."""
    db = firestore.client()
    registration = RegistrationService.get_registration(db, registration_id)
    ensure_organizer(TournamentService.get_tournament(db, registration["tournamentId"]))

    form = RegistrationStatusForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))
    registration = RegistrationService.update_status(
        db, registration_id, form.status.data, notes=form.notes.data or None
    )
    return api_response(
        registration, message=f"Registration {registration['status']}."
    )


@bp.route("/<string:registration_id>/withdraw", methods=["POST"])
@login_required
def withdraw(registration_id: str) -> Any:
    RegistrationService.withdraw(firestore.client(), registration_id, current_user_id())
    return api_response(message="Registration withdrawn.")
