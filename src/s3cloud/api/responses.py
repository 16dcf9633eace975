"""XML response bodies for the S3Cloud API.

Listings and errors are rendered with xml.etree.ElementTree:

    <Buckets>
      <Bucket>
        <Name>photos</Name>
        <CreationDate>...</CreationDate>
        <LastModifiedDate>...</LastModifiedDate>
        <Status>active</Status>
      </Bucket>
    </Buckets>

A single bucket adds an <Objects> element listing its object records.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from datetime import UTC, datetime
from email.utils import format_datetime

from fastapi import Response

from s3cloud.storage.models import BucketRecord, ObjectRecord

XML_MEDIA_TYPE = "application/xml"


class XmlResponse(Response):
    media_type = XML_MEDIA_TYPE


def _to_bytes(root: ET.Element) -> bytes:
    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _bucket_element(record: BucketRecord) -> ET.Element:
    elem = ET.Element("Bucket")
    ET.SubElement(elem, "Name").text = record.name
    ET.SubElement(elem, "CreationDate").text = record.created
    ET.SubElement(elem, "LastModifiedDate").text = record.last_modified
    ET.SubElement(elem, "Status").text = record.status
    return elem


def _object_element(obj: ObjectRecord) -> ET.Element:
    elem = ET.Element("Object")
    ET.SubElement(elem, "Key").text = obj.key
    ET.SubElement(elem, "Size").text = str(obj.content_length)
    ET.SubElement(elem, "ContentType").text = obj.content_type
    ET.SubElement(elem, "LastModified").text = obj.last_modified
    return elem


def bucket_list_xml(buckets: Iterable[BucketRecord]) -> bytes:
    """Render all buckets, sorted by name."""
    root = ET.Element("Buckets")
    for record in sorted(buckets, key=lambda b: b.name):
        root.append(_bucket_element(record))
    return _to_bytes(root)


def bucket_xml(record: BucketRecord) -> bytes:
    """Render one bucket with its objects, sorted by key."""
    root = _bucket_element(record)
    ET.SubElement(root, "ObjectCount").text = str(record.object_count)
    objects = ET.SubElement(root, "Objects")
    for obj in sorted(record.objects, key=lambda o: o.key):
        objects.append(_object_element(obj))
    return _to_bytes(root)


def error_xml(*, code: str, message: str, resource: str, request_id: str) -> bytes:
    root = ET.Element("Error")
    ET.SubElement(root, "Code").text = code
    ET.SubElement(root, "Message").text = message
    ET.SubElement(root, "Resource").text = resource
    ET.SubElement(root, "RequestId").text = request_id
    return _to_bytes(root)


def http_date(timestamp: str) -> str:
    """Convert a stored ISO-8601 timestamp to an HTTP date.

    Timestamps that do not parse are returned unchanged.
    """
    try:
        dt = datetime.fromisoformat(timestamp)
    except ValueError:
        return timestamp
    if dt.tzinfo is None:
        return timestamp
    return format_datetime(dt.astimezone(UTC), usegmt=True)
