"""Forms for organizer broadcasts."""

from flask_wtf import FlaskForm
from wtforms import BooleanField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from .services import ANNOUNCEMENT_PRIORITIES


class AnnouncementForm(FlaskForm):
    """Form for a tournament-wide announcement."""

    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    message = TextAreaField("Message", validators=[DataRequired(), Length(max=1000)])
    priority = SelectField(
        "Priority",
        choices=[(p, p.title()) for p in ANNOUNCEMENT_PRIORITIES],
        default="medium",
    )
    send_email = BooleanField("Send Email")


class ConditionsUpdateForm(FlaskForm):
    """Form for an urgent weather or venue update."""

    type = SelectField(
        "Type", choices=[("weather", "Weather"), ("venue", "Venue")]
    )
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    message = TextAreaField("Message", validators=[DataRequired(), Length(max=1000)])
    new_venue = StringField("New Venue", validators=[Optional(), Length(max=200)])
    weather_condition = StringField(
        "Weather Condition", validators=[Optional(), Length(max=100)]
    )
