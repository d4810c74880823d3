# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
End-to-end walkthrough against a live FileMaker Server.

Creates a scratch ``QuickstartTasks`` table, writes and queries a few records,
then drops the table. Connection details come from the environment:

    FMS_URL        e.g. https://fms.example.com
    FMS_DATABASE   e.g. Contacts.fmp12
    FMS_USER / FMS_PASSWORD, or FMS_API_KEY for an Otto proxy
"""

import logging
import os
import sys

from FileMaker.OData import (
    BasicAuthAdapter,
    FileMakerODataClient,
    FMODataError,
    ODataConfig,
    OttoAdapter,
    TelemetryConfig,
    asc,
    contains,
    fm_table,
    gte,
    number_field,
    text_field,
    timestamp_field,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

base_url = os.environ.get("FMS_URL", "").rstrip("/")
database = os.environ.get("FMS_DATABASE", "")
if not base_url or not database:
    print("Set FMS_URL and FMS_DATABASE; exiting.")
    sys.exit(1)

if os.environ.get("FMS_API_KEY"):
    adapter = OttoAdapter(base_url, database, os.environ["FMS_API_KEY"])
else:
    adapter = BasicAuthAdapter(base_url, database, os.environ.get("FMS_USER", ""), os.environ.get("FMS_PASSWORD", ""))

config = ODataConfig.from_env()
config = ODataConfig(
    http_retries=config.http_retries,
    http_timeout=config.http_timeout,
    verify_ssl=config.verify_ssl,
    default_top=config.default_top,
    telemetry=TelemetryConfig(enable_logging=True, log_level="INFO"),
)

tasks = fm_table(
    "QuickstartTasks",
    {
        "id": text_field().primary_key(),
        "title": text_field().not_null(),
        "points": number_field(),
        "created": timestamp_field().read_only(),
    },
)


def log_call(call: str) -> None:
    print({"call": call})


with FileMakerODataClient(adapter, config) as client:
    db = client.database(timeout=30)

    log_call("db.list_tables()")
    print(db.list_tables())

    log_call("db.schema.create_table(tasks)")
    db.schema.create_table(tasks)
    try:
        items = db.from_(tasks)

        for i, title in enumerate(["Write docs", "Review docs", "Ship"], start=1):
            log_call(f"items.create({{'title': {title!r}}})")
            items.create({"title": title, "points": i * 3})

        log_call("items.list().where(gte(points, 6)).order_by(asc(title))")
        for record in items.list().where(gte(tasks.c.points, 6)).order_by(asc(tasks.c.title)).execute():
            print(record["title"], record["points"])

        log_call("items.update_where(contains(title, 'docs'), {'points': 1})")
        print(items.update_where(contains(tasks.c.title, "docs"), {"points": 1}))

        log_call("items.count()")
        print(items.count())

        log_call("items.delete_many_where(gte(points, 0))")
        print(items.delete_many_where(gte(tasks.c.points, 0)))
    except FMODataError as e:
        print(f"Request failed: {e.to_dict()}")
    finally:
        log_call("db.schema.drop_table(tasks)")
        db.schema.drop_table(tasks)
