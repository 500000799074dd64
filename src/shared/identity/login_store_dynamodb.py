"""DynamoDB implementation of login store for AWS deployments."""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from ..models.login_event import LoginEvent
from .exceptions import DuplicateEventError, StorageUnavailableError
from .login_store import LoginStore

logger = logging.getLogger(__name__)

LOGIN_PREFIX = "LOGIN#"
EVENT_PREFIX = "EVENT#"

# Zero-padded so lexical sort key order matches numeric timestamp order
TIMESTAMP_WIDTH = 19


class DynamoDBLoginStore(LoginStore):
    """DynamoDB implementation of login storage.

    Table schema (single table):
    - PK: pk, SK: sk
    - Login item: pk=username, sk=LOGIN#<timestamp>#<event_id>
    - Event id guard: pk=EVENT#<event_id>, sk=EVENT, holds the login's keys

    The guard item is written first with a conditional put, which makes
    event ids unique across users.
    """

    def __init__(
        self,
        table_name: str = "travel-detector-logins",
        region: str = "us-east-1",
    ):
        self.table_name = table_name
        self.region = region
        self._table = None

    def _get_table(self):
        """Lazy initialization of DynamoDB table."""
        if self._table is None:
            import boto3
            dynamodb = boto3.resource("dynamodb", region_name=self.region)
            self._table = dynamodb.Table(self.table_name)
        return self._table

    @staticmethod
    def _sort_key(event: LoginEvent) -> str:
        return f"{LOGIN_PREFIX}{event.timestamp:0{TIMESTAMP_WIDTH}d}#{event.event_id}"

    def _event_to_item(self, event: LoginEvent) -> Dict[str, Any]:
        """Convert LoginEvent to DynamoDB item."""
        return {
            "pk": event.username,
            "sk": self._sort_key(event),
            "username": event.username,
            "unix_timestamp": event.timestamp,
            "event_uuid": event.event_id,
            "ip_address": event.source_ip,
            "lat": Decimal(str(event.latitude)),
            "lon": Decimal(str(event.longitude)),
            "radius": event.accuracy_radius,
        }

    @staticmethod
    def _item_to_event(item: Dict[str, Any]) -> LoginEvent:
        """Convert DynamoDB item to LoginEvent."""
        return LoginEvent(
            username=item["username"],
            timestamp=int(item["unix_timestamp"]),
            event_id=item["event_uuid"],
            source_ip=item.get("ip_address", ""),
            latitude=float(item["lat"]),
            longitude=float(item["lon"]),
            accuracy_radius=int(item.get("radius", 0)),
        )

    def insert(self, event: LoginEvent) -> None:
        """Record a login event."""
        table = self._get_table()
        guard = {
            "pk": f"{EVENT_PREFIX}{event.event_id}",
            "sk": "EVENT",
            "login_pk": event.username,
            "login_sk": self._sort_key(event),
        }

        try:
            table.put_item(Item=guard, ConditionExpression="attribute_not_exists(pk)")
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise DuplicateEventError(event.event_id) from e
            logger.error(f"Error reserving event id {event.event_id}: {e}")
            raise StorageUnavailableError(str(e)) from e

        try:
            table.put_item(Item=self._event_to_item(event))
        except ClientError as e:
            logger.error(f"Error storing login {event.event_id}: {e}")
            self._release_guard(guard)
            raise StorageUnavailableError(str(e)) from e

        logger.debug(f"Stored login {event.event_id} for {event.username}")

    def _release_guard(self, guard: Dict[str, Any]) -> None:
        try:
            self._get_table().delete_item(Key={"pk": guard["pk"], "sk": guard["sk"]})
        except ClientError as e:
            logger.error(f"Error releasing event id guard {guard['pk']}: {e}")

    def get_login(self, event_id: str) -> Optional[LoginEvent]:
        """Get a login by event id."""
        table = self._get_table()
        try:
            guard = table.get_item(
                Key={"pk": f"{EVENT_PREFIX}{event_id}", "sk": "EVENT"},
                ConsistentRead=True,
            ).get("Item")
            if not guard:
                return None

            item = table.get_item(
                Key={"pk": guard["login_pk"], "sk": guard["login_sk"]},
                ConsistentRead=True,
            ).get("Item")
        except ClientError as e:
            logger.error(f"Error getting login {event_id}: {e}")
            raise StorageUnavailableError(str(e)) from e

        return self._item_to_event(item) if item else None

    def get_logins_for_user(self, username: str) -> List[LoginEvent]:
        """Get every login recorded for a user, oldest first."""
        query_kwargs = {
            "KeyConditionExpression": "pk = :username AND begins_with(sk, :prefix)",
            "ExpressionAttributeValues": {
                ":username": username,
                ":prefix": LOGIN_PREFIX,
            },
            "ScanIndexForward": True,
            "ConsistentRead": True,
        }

        items: List[Dict[str, Any]] = []
        try:
            table = self._get_table()
            while True:
                response = table.query(**query_kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Error querying logins for {username}: {e}")
            raise StorageUnavailableError(str(e)) from e

        return [self._item_to_event(item) for item in items]
