"""Attendee materialization for confirmed orders."""

from django.db import transaction

from django_reunion.registration.answers import parse_answers
from django_reunion.registration.models import Attendee, Order


@transaction.atomic
def materialize_attendees(order: Order) -> list[Attendee]:
    """Replace *order*'s attendee rows with one per attending participant.

    Existing rows are deleted before the new set is inserted, so calling
    this again after a partial failure never duplicates attendees and the
    count never exceeds the attending participants in ``order.answers``.

    Args:
        order: A manually confirmed or paid order.

    Returns:
        The created ``Attendee`` rows.
    """
    answers = parse_answers(order.answers)
    Attendee.objects.filter(order=order).delete()
    rows = [
        Attendee(
            order=order,
            participant_index=person.index,
            name=person.name,
            age=int(person.age) if person.age is not None and person.age >= 0 else None,
            answers=dict(person.raw),
        )
        for person in answers.attending
    ]
    return Attendee.objects.bulk_create(rows)
