"""Data source connectors and the async gateway in front of them."""

from alert_engine.connectors.base import (
    ConnectionFailed,
    ConnectorError,
    DataSourceConnector,
    QueryFailed,
)
from alert_engine.connectors.gateway import ConnectorGateway, ConnectorTimeout, default_connector_factory
from alert_engine.connectors.sqlalchemy_connector import SqlAlchemyConnector

__all__ = [
    "ConnectionFailed",
    "ConnectorError",
    "ConnectorGateway",
    "ConnectorTimeout",
    "DataSourceConnector",
    "QueryFailed",
    "SqlAlchemyConnector",
    "default_connector_factory",
]
