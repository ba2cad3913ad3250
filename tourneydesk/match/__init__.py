"""The fixtures blueprint."""

from flask import Blueprint

bp = Blueprint("fixtures", __name__, url_prefix="/fixtures")

from . import routes  # noqa: E402
from .models import Bracket, Match  # noqa: E402
from .services import FixtureService, RecordOutcome  # noqa: E402

__all__ = ["Bracket", "FixtureService", "Match", "RecordOutcome", "routes"]
