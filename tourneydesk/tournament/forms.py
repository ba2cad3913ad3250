"""Forms for the tournament blueprint."""

from flask_wtf import FlaskForm
from wtforms import (
    DateField,
    FloatField,
    IntegerField,
    SelectField,
    StringField,
    TextAreaField,
    ValidationError,
)
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from tourneydesk.bracket import TournamentFormat
from tourneydesk.constants import SPORTS

FORMAT_CHOICES = [
    (TournamentFormat.SINGLE_ELIMINATION.value, "Single Elimination"),
    (TournamentFormat.ROUND_ROBIN.value, "Round Robin"),
]


class _DateRangeMixin:
    """Cross-field checks shared by the create and edit forms."""

    def validate_end_date(self, field):
        """Validate that the tournament does not end before it starts."""
        if field.data and self.start_date.data and field.data < self.start_date.data:
            raise ValidationError("End date must be on or after the start date.")

    def validate_registration_deadline(self, field):
        """Validate that registration closes before the tournament starts."""
        if field.data and self.start_date.data and field.data > self.start_date.data:
            raise ValidationError(
                "Registration deadline must be on or before the start date."
            )


class TournamentForm(_DateRangeMixin, FlaskForm):
    """Form for creating a tournament."""

    name = StringField(
        "Tournament Name", validators=[DataRequired(), Length(max=100)]
    )
    sport = SelectField(
        "Sport",
        choices=[(s, s) for s in SPORTS],
        validators=[DataRequired()],
    )
    format = SelectField(
        "Tournament Format", choices=FORMAT_CHOICES, validators=[DataRequired()]
    )
    start_date = DateField("Start Date", validators=[DataRequired()])
    end_date = DateField("End Date", validators=[DataRequired()])
    registration_deadline = DateField(
        "Registration Deadline", validators=[DataRequired()]
    )
    venue = StringField("Venue", validators=[DataRequired(), Length(max=200)])
    max_participants = IntegerField(
        "Max Participants", validators=[DataRequired(), NumberRange(min=2)]
    )
    entry_fee = FloatField("Entry Fee", validators=[Optional(), NumberRange(min=0)])
    description = TextAreaField("Description", validators=[Optional()])
    rules = TextAreaField("Rules", validators=[Optional()])


class EditTournamentForm(_DateRangeMixin, FlaskForm):
    """Form for editing a tournament; every field is optional."""

    name = StringField("Tournament Name", validators=[Optional(), Length(max=100)])
    sport = SelectField(
        "Sport",
        choices=[("", "")] + [(s, s) for s in SPORTS],
        validators=[Optional()],
    )
    format = SelectField(
        "Tournament Format",
        choices=[("", "")] + FORMAT_CHOICES,
        validators=[Optional()],
    )
    start_date = DateField("Start Date", validators=[Optional()])
    end_date = DateField("End Date", validators=[Optional()])
    registration_deadline = DateField("Registration Deadline", validators=[Optional()])
    venue = StringField("Venue", validators=[Optional(), Length(max=200)])
    max_participants = IntegerField(
        "Max Participants", validators=[Optional(), NumberRange(min=2)]
    )
    entry_fee = FloatField("Entry Fee", validators=[Optional(), NumberRange(min=0)])
    description = TextAreaField("Description", validators=[Optional()])
    rules = TextAreaField("Rules", validators=[Optional()])
