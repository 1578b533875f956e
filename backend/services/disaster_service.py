"""
Disaster Service - audit-trailed CRUD for disaster records

Every mutation appends to the record's audit_trail and broadcasts exactly one
disaster_updated event. Updates append inside a Firebase transaction, so a
concurrent update is retried against the latest trail instead of dropping
its entry. Substantive fields stay last-write-wins.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from utils.errors import ForbiddenError, NotFoundError, ValidationError
from utils.secure_logging import hash_user_id
from utils.validators import DisasterValidator, is_valid_record_id, sanitize_text

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'


class DisasterService:
    """Create, read, update and delete disasters with an append-only audit trail"""

    COLLECTION = 'disasters'

    def __init__(self, firebase_db, notifier, clock: Optional[Callable[[], datetime]] = None,
                 default_actor_id: str = 'reliefAdmin', require_actor_id: bool = False):
        """
        Args:
            firebase_db: Firebase `db` module (or a compatible double)
            notifier: ChangeNotifier for disaster_updated broadcasts
            clock: Returns the current aware UTC datetime
            default_actor_id: Actor recorded when an update names nobody
            require_actor_id: Reject anonymous updates instead of using the default actor
        """
        self.db = firebase_db
        self.notifier = notifier
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.default_actor_id = default_actor_id
        self.require_actor_id = require_actor_id

    def _record_ref(self, disaster_id: str, not_found_message: str = 'Disaster not found'):
        if not is_valid_record_id(disaster_id):
            raise NotFoundError(not_found_message)
        return self.db.reference(f'{self.COLLECTION}/{disaster_id}')

    def _now(self) -> str:
        return self.clock().isoformat()

    @staticmethod
    def _to_record(disaster_id: str, stored: Dict) -> Dict:
        # Firebase drops empty lists, so restore them on the way out
        record = {**stored, 'id': disaster_id}
        record.setdefault('tags', [])
        record.setdefault('audit_trail', [])
        return record

    def create_disaster(self, data: Dict) -> Dict:
        """
        Insert a disaster with a single "create" audit entry.

        Raises:
            ValidationError: title or owner_id missing
        """
        is_valid, error_message = DisasterValidator.validate_disaster_data(data)
        if not is_valid:
            raise ValidationError(error_message)

        now = self._now()
        owner_id = sanitize_text(data['owner_id'])
        record = DisasterValidator.clean_fields(data, DisasterValidator.UPDATABLE_FIELDS)
        record.setdefault('tags', [])
        record.update({
            'owner_id': owner_id,
            'created_at': now,
            'audit_trail': [{
                'action': 'create',
                'user_id': owner_id,
                'timestamp': now
            }]
        })

        new_ref = self.db.reference(self.COLLECTION).push(record)
        created = self._to_record(new_ref.key, record)
        logger.info(f"Disaster {new_ref.key} created by {hash_user_id(owner_id)}")

        self.notifier.disaster_changed('create', created)
        return created

    def list_disasters(self, tag: Optional[str] = None) -> List[Dict]:
        """
        All disasters, newest first, optionally limited to those carrying `tag`.
        """
        disasters_dict = self.db.reference(self.COLLECTION).get() or {}

        disasters = []
        for disaster_id, stored in disasters_dict.items():
            if not isinstance(stored, dict):
                continue
            record = self._to_record(disaster_id, stored)
            if tag and tag not in record['tags']:
                continue
            disasters.append(record)

        disasters.sort(key=lambda d: d.get('created_at') or '', reverse=True)
        return disasters

    def get_disaster(self, disaster_id: str) -> Dict:
        """
        Raises:
            NotFoundError: no disaster with this id
        """
        stored = self._record_ref(disaster_id).get()
        if not isinstance(stored, dict):
            raise NotFoundError('Disaster not found')
        return self._to_record(disaster_id, stored)

    def exists(self, disaster_id: str) -> bool:
        if not is_valid_record_id(disaster_id):
            return False
        return isinstance(self.db.reference(f'{self.COLLECTION}/{disaster_id}').get(), dict)

    def update_disaster(self, disaster_id: str, data: Dict, actor_id: Optional[str] = None) -> Dict:
        """
        Apply the supplied fields and append an "update" audit entry in one write.

        The entry's `changes` payload is the full submitted body.

        Raises:
            ValidationError: empty body, blank title, or missing actor when one is required
            NotFoundError: no disaster with this id
        """
        is_valid, error_message = DisasterValidator.validate_update_data(data)
        if not is_valid:
            raise ValidationError(error_message)

        actor_id = sanitize_text(actor_id)
        if not actor_id:
            if self.require_actor_id:
                raise ValidationError('X-User-Id header is required.')
            actor_id = self.default_actor_id

        now = self._now()
        updates = DisasterValidator.clean_fields(data, DisasterValidator.UPDATABLE_FIELDS)
        entry = {
            'action': 'update',
            'user_id': actor_id,
            'timestamp': now,
            'changes': data
        }

        def append_entry(current):
            if current is None:
                raise NotFoundError('Disaster not found to update.')
            trail = list(current.get('audit_trail') or [])
            trail.append(entry)
            return {**current, **updates, 'updated_at': now, 'audit_trail': trail}

        ref = self._record_ref(disaster_id, 'Disaster not found to update.')
        stored = ref.transaction(append_entry)

        updated = self._to_record(disaster_id, stored)
        logger.info(f"Disaster {disaster_id} updated by {hash_user_id(actor_id)} "
                    f"(trail length {len(updated['audit_trail'])})")

        self.notifier.disaster_changed('update', updated)
        return updated

    def delete_disaster(self, disaster_id: str, role: Optional[str]) -> None:
        """
        Delete a disaster. Only the admin role may delete; the role is checked
        before the store is touched. Deleting an unknown id succeeds; a
        malformed id names no record, so nothing is written or broadcast.

        Raises:
            ForbiddenError: role is not "admin"
        """
        if role != ADMIN_ROLE:
            logger.warning(f"Rejected delete of disaster {disaster_id}: role {role!r}")
            raise ForbiddenError('Forbidden: Only admins can delete disasters.')

        if not is_valid_record_id(disaster_id):
            logger.info(f"Delete of malformed disaster id {disaster_id!r} ignored")
            return

        self.db.reference(f'{self.COLLECTION}/{disaster_id}').delete()
        logger.info(f"Disaster {disaster_id} deleted")

        self.notifier.disaster_changed('delete', {'id': disaster_id})
