"""Forms for the fixtures blueprint.

The forms accept both form-encoded and JSON bodies; Flask-WTF reads
``request.get_json()`` when the request carries JSON.
"""

from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import AnyOf, Length, Optional, ValidationError

from tourneydesk.bracket import MatchStatus


class ScoreField(IntegerField):
    """An integer field that refuses fractional numbers instead of truncating them."""

    def process_formdata(self, valuelist):
        if valuelist:
            value = valuelist[0]
            if isinstance(value, bool) or (
                isinstance(value, float) and not value.is_integer()
            ):
                self.data = None
                raise ValueError("Scores must be whole numbers.")
        super().process_formdata(valuelist)


def _non_negative(field):
    if field.process_errors:
        return
    if field.data is None:
        raise ValidationError("Score is required.")
    if field.data < 0:
        raise ValidationError("Scores cannot be negative.")


class ResultForm(FlaskForm):
    """Form for recording or correcting a match result."""

    participant1_score = ScoreField("Participant 1 Score")
    participant2_score = ScoreField("Participant 2 Score")
    forfeit = BooleanField("Forfeit")
    forfeiting_side = IntegerField(
        "Forfeiting Side", validators=[Optional(), AnyOf([1, 2])]
    )
    overtime = BooleanField("Overtime")
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=500)])
    correction = BooleanField("Correction")

    def validate_participant1_score(self, field):
        """Validate that the score is present and not negative."""
        _non_negative(field)

    def validate_participant2_score(self, field):
        """Validate that the score is present and not negative."""
        _non_negative(field)


class StatusForm(FlaskForm):
    """Form for changing a match's status outside of result recording."""

    status = SelectField(
        "Status",
        choices=[
            (s.value, s.value.replace("-", " ").title())
            for s in MatchStatus
            if s is not MatchStatus.COMPLETED
        ],
    )


class ScheduleForm(FlaskForm):
    """Form for rescheduling or relocating a match."""

    scheduled_date = StringField("Scheduled Date", validators=[Optional()])
    venue = StringField("Venue", validators=[Optional(), Length(max=200)])
    court = StringField("Court", validators=[Optional(), Length(max=50)])

    def validate(self, extra_validators=None):
        """Require at least one change."""
        if not super().validate(extra_validators=extra_validators):
            return False
        if not (self.scheduled_date.data or self.venue.data or self.court.data):
            self.scheduled_date.errors.append(
                "Provide a new date, venue or court."
            )
            return False
        return True


class GenerateForm(FlaskForm):
    """Form for (re)generating a tournament's bracket."""

    confirm = BooleanField("Regenerate even if matches have been played")
