"""Model mapping details that the services rely on."""

import pytest
from sqlalchemy.exc import InvalidRequestError

from classbook.models import ClassSession
from tests.factories.schedule_builders import create_class_session


def test_bookings_collection_is_never_loaded_implicitly(db):
    class_session = create_class_session(db)
    db.expire_all()
    loaded = db.get(ClassSession, class_session.id)

    with pytest.raises(InvalidRequestError):
        _ = loaded.bookings
