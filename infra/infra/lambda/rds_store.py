"""
Relational store — runs parameterized statements against Aurora through the
RDS Data API, so the Lambda needs no connection pool or VPC attachment.
"""
import logging
import os

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger()

DB_CLUSTER_ARN = os.environ.get("DB_CLUSTER_ARN", "")
DB_SECRET_ARN = os.environ.get("DB_SECRET_ARN", "")
DB_NAME = os.environ.get("DB_NAME", "analytics")

EVENT_COLUMNS = ("event_name", "session_id", "user_id", "properties", "user_agent", "country")

INSERT_EVENT_SQL = (
    f"INSERT INTO analytics_events ({', '.join(EVENT_COLUMNS)}) "
    f"VALUES ({', '.join(':' + c for c in EVENT_COLUMNS)})"
)


class DatastoreError(Exception):
    pass


class DatastoreNotConfigured(DatastoreError):
    pass


def _to_sql_parameter(name, value) -> dict:
    # bool before int: bool is an int subclass
    if value is None:
        field = {"isNull": True}
    elif isinstance(value, bool):
        field = {"booleanValue": value}
    elif isinstance(value, int):
        field = {"longValue": value}
    elif isinstance(value, float):
        field = {"doubleValue": value}
    else:
        field = {"stringValue": str(value)}
    return {"name": name, "value": field}


class RdsDataStore:

    def __init__(self, client, resource_arn: str, secret_arn: str, database: str):
        self.client = client
        self.resource_arn = resource_arn
        self.secret_arn = secret_arn
        self.database = database

    @classmethod
    def from_env(cls, client=None) -> "RdsDataStore":
        if not DB_CLUSTER_ARN or not DB_SECRET_ARN:
            raise DatastoreNotConfigured("DB_CLUSTER_ARN / DB_SECRET_ARN not set")
        return cls(
            client or boto3.client("rds-data"),
            resource_arn=DB_CLUSTER_ARN,
            secret_arn=DB_SECRET_ARN,
            database=DB_NAME,
        )

    def execute(self, statement: str, params: dict) -> int:
        """Run one statement; returns the number of rows it affected."""
        try:
            resp = self.client.execute_statement(
                resourceArn=self.resource_arn,
                secretArn=self.secret_arn,
                database=self.database,
                sql=statement,
                parameters=[_to_sql_parameter(k, v) for k, v in params.items()],
            )
        except ClientError as e:
            code = e.response["Error"]["Code"]
            logger.error(f"Data API error ({code}): {e}")
            raise DatastoreError(str(e)) from e
        return resp.get("numberOfRecordsUpdated", 0)


def insert_event(store, event) -> int:
    affected = store.execute(INSERT_EVENT_SQL, dict(zip(EVENT_COLUMNS, event.as_row())))
    if affected != 1:
        logger.warning(f"Insert of {event.event_name} affected {affected} rows")
        raise DatastoreError(f"expected 1 inserted row, got {affected}")
    return affected
