"""
Records for the tipline tables.
"""

from typing import Dict, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from tipline.database import Database
from .table import Table


class Location(Table):
    """A place a report was sent from."""

    table_name = 'locations'
    primary_key = 'location_id'
    columns = {
        'location_id': 'location_id',
        'address_parts': 'address_parts',
        'longitude': 'longitude',
        'latitude': 'latitude',
    }


def _load_location(db: Database, location_id) -> Optional[Location]:
    if location_id is None:
        return None
    location = Location(db)
    return location if location.load({'location_id': location_id}) else None


class Report(Table):
    """An SMS tip submitted by a user."""

    table_name = 'reports'
    columns = {
        'id': 'id',
        'user_id': 'user_id',
        'location_id': 'location_id',
        'sms_contents': 'sms_contents',
    }

    location: Optional[Location] = None

    def load_all(self) -> None:
        self.location = _load_location(self.db, self.location_id)


class Target(Table):
    """A public official reports can be addressed to."""

    table_name = 'targets'
    columns = {
        'id': 'id',
        'fname': 'first_name',
        'lname': 'last_name',
        'twitter': 'twitter',
        'email': 'email',
        'jurisdiction': 'jurisdiction',
        'position': 'position',
    }


class User(Table):
    table_name = 'users'
    columns = {
        'id': 'id',
        'fname': 'first_name',
        'lname': 'last_name',
        'phone': 'phone',
        'uname': 'username',
        'email': 'email',
        'location_id': 'location_id',
    }

    location: Optional[Location] = None

    def load_all(self) -> None:
        self.location = _load_location(self.db, self.location_id)


class Authentication(Table):
    """Password hash of a user name."""

    table_name = 'authentications'
    primary_key = 'uname'
    columns = {
        'uname': 'username',
        'pwhash': 'password_hash',
    }

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def save(self):
        # The user name is supplied by the caller, not generated
        if self.new:
            inserted = self.db.insert(self.table_name, self.to_dict())
            if inserted:
                self.new = False
            return inserted
        return super().save()


MODELS = (Location, Report, Target, User, Authentication)


def get_stats(db: Database) -> Dict[str, int]:
    """Get record counts for every table."""
    return {
        model.table_name: int(db.dcount('*', model.table_name) or 0)
        for model in MODELS
    }
