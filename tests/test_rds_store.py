"""Tests for the Data API store, using botocore's Stubber."""

import boto3
import pytest
from botocore.stub import Stubber

from analytics_event import AnalyticsEvent
from rds_store import (
    INSERT_EVENT_SQL,
    DatastoreError,
    DatastoreNotConfigured,
    RdsDataStore,
    insert_event,
)

CLUSTER_ARN = "arn:aws:rds:eu-west-3:123456789012:cluster:analytics"
SECRET_ARN = "arn:aws:secretsmanager:eu-west-3:123456789012:secret:analytics-AbCdEf"


@pytest.fixture
def rds_client():
    return boto3.client(
        "rds-data",
        region_name="eu-west-3",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def data_store(rds_client):
    return RdsDataStore(rds_client, resource_arn=CLUSTER_ARN, secret_arn=SECRET_ARN, database="analytics")


def test_insert_sql_lists_columns_in_order():
    assert INSERT_EVENT_SQL == (
        "INSERT INTO analytics_events "
        "(event_name, session_id, user_id, properties, user_agent, country) "
        "VALUES (:event_name, :session_id, :user_id, :properties, :user_agent, :country)"
    )


def test_insert_event_sends_one_parameterized_statement(rds_client, data_store):
    tracked = AnalyticsEvent.from_payload(
        {"event": "click", "properties": {"session_id": "s1", "plan": "pro"}},
        {"user-agent": "UA", "cf-ipcountry": "FR"},
    )
    expected_params = {
        "resourceArn": CLUSTER_ARN,
        "secretArn": SECRET_ARN,
        "database": "analytics",
        "sql": INSERT_EVENT_SQL,
        "parameters": [
            {"name": "event_name", "value": {"stringValue": "click"}},
            {"name": "session_id", "value": {"stringValue": "s1"}},
            {"name": "user_id", "value": {"isNull": True}},
            {"name": "properties", "value": {"stringValue": '{"plan":"pro"}'}},
            {"name": "user_agent", "value": {"stringValue": "UA"}},
            {"name": "country", "value": {"stringValue": "FR"}},
        ],
    }

    with Stubber(rds_client) as stubber:
        stubber.add_response("execute_statement", {"numberOfRecordsUpdated": 1}, expected_params)
        assert insert_event(data_store, tracked) == 1
        stubber.assert_no_pending_responses()


def test_execute_converts_scalar_parameters(rds_client, data_store):
    with Stubber(rds_client) as stubber:
        stubber.add_response(
            "execute_statement",
            {"numberOfRecordsUpdated": 0},
            {
                "resourceArn": CLUSTER_ARN,
                "secretArn": SECRET_ARN,
                "database": "analytics",
                "sql": "SELECT :a, :b, :c",
                "parameters": [
                    {"name": "a", "value": {"booleanValue": True}},
                    {"name": "b", "value": {"longValue": 3}},
                    {"name": "c", "value": {"doubleValue": 1.5}},
                ],
            },
        )
        assert data_store.execute("SELECT :a, :b, :c", {"a": True, "b": 3, "c": 1.5}) == 0


def test_client_errors_become_datastore_errors(rds_client, data_store):
    with Stubber(rds_client) as stubber:
        stubber.add_client_error(
            "execute_statement",
            service_error_code="DatabaseResumingException",
            service_message="The Aurora DB instance is resuming after being auto-paused.",
        )
        with pytest.raises(DatastoreError):
            data_store.execute("SELECT 1", {})


def test_insert_event_requires_one_affected_row(rds_client, data_store):
    tracked = AnalyticsEvent.from_payload({"event": "click"})

    with Stubber(rds_client) as stubber:
        stubber.add_response("execute_statement", {"numberOfRecordsUpdated": 0})
        with pytest.raises(DatastoreError):
            insert_event(data_store, tracked)


def test_from_env_requires_cluster_and_secret(monkeypatch):
    monkeypatch.setattr("rds_store.DB_CLUSTER_ARN", "")
    monkeypatch.setattr("rds_store.DB_SECRET_ARN", SECRET_ARN)

    with pytest.raises(DatastoreNotConfigured):
        RdsDataStore.from_env()


def test_from_env_uses_configuration(monkeypatch, rds_client):
    monkeypatch.setattr("rds_store.DB_CLUSTER_ARN", CLUSTER_ARN)
    monkeypatch.setattr("rds_store.DB_SECRET_ARN", SECRET_ARN)
    monkeypatch.setattr("rds_store.DB_NAME", "events")

    data_store = RdsDataStore.from_env(client=rds_client)

    assert data_store.resource_arn == CLUSTER_ARN
    assert data_store.secret_arn == SECRET_ARN
    assert data_store.database == "events"
