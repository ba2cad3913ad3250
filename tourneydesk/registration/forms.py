"""Forms for the registration blueprint."""

from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional, Regexp

from tourneydesk.bracket import RegistrationStatus

PHONE_PATTERN = r"^(\+61|0)[2-478](?:[ -]?[0-9]){8}$"


class IndividualRegistrationForm(FlaskForm):
    """Form for registering the session user as an individual."""

    tournament_id = StringField("Tournament", validators=[DataRequired()])
    emergency_contact_name = StringField(
        "Emergency Contact Name", validators=[DataRequired(), Length(max=100)]
    )
    emergency_contact_phone = StringField(
        "Emergency Contact Phone",
        validators=[
            DataRequired(),
            Regexp(PHONE_PATTERN, message="Valid Australian phone number is required."),
        ],
    )
    emergency_contact_relationship = StringField(
        "Emergency Contact Relationship", validators=[DataRequired(), Length(max=50)]
    )
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=500)])


class TeamRegistrationForm(IndividualRegistrationForm):
    """Form for registering a team captained by the session user.

    Team member ids are read from the JSON body's ``teamMembers`` list.
    """

    team_name = StringField(
        "Team Name",
        validators=[
            DataRequired(),
            Length(min=2, max=50, message="Team name must be between 2 and 50 characters."),
        ],
    )


class RegistrationStatusForm(FlaskForm):
    """Form for an organizer's approval decision."""

    status = SelectField(
        "Status",
        choices=[(s.value, s.value.title()) for s in RegistrationStatus],
        validators=[DataRequired()],
    )
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=500)])
