from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    database_host: str = Field("localhost", validation_alias="DATABASE_HOST")
    database_port: int = Field(27017, validation_alias="DATABASE_PORT")
    database_user: str = Field("", validation_alias="DATABASE_USER")
    database_password: str = Field("", validation_alias="DATABASE_PASSWORD")
    database_name: str = Field("idempotent_consumer", validation_alias="DATABASE_NAME")
    records_collection: str = Field("processing_records", validation_alias="RECORDS_COLLECTION")
    dead_letter_collection: str = Field("dead_letter_messages", validation_alias="DEAD_LETTER_COLLECTION")
    duplicate_collection: str = Field("duplicate_attempts", validation_alias="DUPLICATE_COLLECTION")
    orders_collection: str = Field("orders", validation_alias="ORDERS_COLLECTION")

    broker_host: str = Field("localhost", validation_alias="BROKER_HOST")
    broker_port: int = Field(5672, validation_alias="BROKER_PORT")
    broker_user: str = Field("guest", validation_alias="BROKER_USER")
    broker_password: str = Field("guest", validation_alias="BROKER_PASSWORD")
    queue_name: str = Field("order-processing-queue", validation_alias="QUEUE_NAME")
    prefetch_count: int = Field(10, validation_alias="PREFETCH_COUNT")

    consumer_name: str = Field("order-processor", validation_alias="CONSUMER_NAME")
    # Failed attempts allowed before a message is quarantined. The counter is process-local.
    max_processing_attempts: int = Field(3, validation_alias="MAX_PROCESSING_ATTEMPTS")
    processing_timeout_seconds: float = Field(30.0, validation_alias="PROCESSING_TIMEOUT_SECONDS")

    # Bounded wait for a duplicate whose original delivery still holds the claim.
    in_flight_poll_initial_seconds: float = Field(0.1, validation_alias="IN_FLIGHT_POLL_INITIAL_SECONDS")
    in_flight_poll_max_seconds: float = Field(2.0, validation_alias="IN_FLIGHT_POLL_MAX_SECONDS")
    in_flight_poll_attempts: int = Field(8, validation_alias="IN_FLIGHT_POLL_ATTEMPTS")

    repository_backend: str = Field("mongo", validation_alias="REPOSITORY_BACKEND")
    consumer_backend: str = Field("rabbitmq", validation_alias="CONSUMER_BACKEND")

    initial_backoff_seconds: float = Field(1.0, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(30.0, validation_alias="MAX_BACKOFF_SECONDS")
    max_connection_attempts: int = Field(10, validation_alias="MAX_CONNECTION_ATTEMPTS")
    backoff_multiplier: float = Field(2.0, validation_alias="BACKOFF_MULTIPLIER")
    database_connection_timeout_ms: int = Field(5000, validation_alias="DATABASE_CONNECTION_TIMEOUT_MS")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(False, validation_alias="LOG_JSON")
    readiness_ping_timeout_seconds: float = Field(5.0, validation_alias="READINESS_PING_TIMEOUT_SECONDS")
