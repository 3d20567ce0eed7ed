"""REST and email connector elements for Bonita service tasks."""

from __future__ import annotations

import json
import re
from typing import Any

from lxml import etree

from procforge.generators.bonita.xmi import BusinessObjectData, XmiFactory
from procforge.models.artifacts import EmailArtifact, RestConfig
from procforge.models.process_config import SmtpSettings

REST_CONNECTOR_VERSION = "1.5.0"
EMAIL_CONNECTOR_VERSION = "1.3.0"
CONNECTOR_MODEL_VERSION = "9"

REST_DEFINITIONS = {
    "GET": "rest-get",
    "PUT": "rest-put",
    "PATCH": "rest-patch",
    "DELETE": "rest-delete",
    "HEAD": "rest-head",
    "OPTIONS": "rest-options",
}

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_ROOT_IDENTIFIER = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)")


def rest_definition_id(method: str | None) -> str:
    return REST_DEFINITIONS.get((method or "POST").strip().upper(), "rest-post")


def header_value(headers: dict[str, Any], name: str) -> str | None:
    """Case-insensitive header lookup; non-string values are ignored."""
    for key, value in headers.items():
        if key.lower() == name.lower() and isinstance(value, str):
            return value
    return None


def split_content_type(content_type: str | None) -> tuple[str, str]:
    """``application/json; charset=ISO-8859-1`` -> (``application/json``, ``ISO-8859-1``)."""
    media_type, charset = "", ""
    if content_type:
        parts = content_type.split(";")
        media_type = parts[0].strip()
        for part in parts[1:]:
            part = part.strip()
            if part.lower().startswith("charset="):
                charset = part[len("charset="):].strip()
    return media_type or "application/json", charset or "UTF-8"


def serialize_body(body: Any) -> str | None:
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body, ensure_ascii=False, separators=(",", ":"))


def render_message(template: str, parameters: dict[str, Any]) -> str:
    """Replace ``${key}`` occurrences with string parameter values."""
    for key, value in parameters.items():
        if key and isinstance(value, str):
            template = template.replace("${" + key + "}", value)
    return template


def is_html(message: str) -> bool:
    stripped = message.strip()
    return "<" in stripped and ">" in stripped


class ConnectorBuilder:
    """Build connector elements for one proc document.

    Args:
        xmi: Element factory of the document
        data_objects: Pool business variables by name, used to list
            the variables a pattern expression references
    """

    def __init__(self, xmi: XmiFactory, data_objects: dict[str, BusinessObjectData]):
        self.xmi = xmi
        self.data_objects = data_objects

    def pattern(self, value: str) -> etree._Element:
        """``TYPE_PATTERN`` expression with one reference per distinct placeholder."""
        expression = self.xmi.expression(
            name="<pattern-expression>", content=value, type="TYPE_PATTERN", returnTypeFixed="true"
        )
        seen: set[str] = set()
        for match in _PLACEHOLDER.finditer(value):
            inner = match.group(1).strip()
            if not inner or inner in seen:
                continue
            seen.add(inner)
            root = _ROOT_IDENTIFIER.match(inner)
            data = self.data_objects.get(root.group(1)) if root else None
            if data is None:
                continue
            referenced = self.xmi.script("referencedElements", inner, inner)
            variable = self.xmi.expression(
                "referencedElements",
                name=data.name,
                content=data.name,
                type="TYPE_VARIABLE",
                returnType=data.class_name,
            )
            variable.append(self.xmi.business_object_ref(data))
            referenced.append(variable)
            expression.append(referenced)
        return expression

    def value(self, value: str | None) -> etree._Element:
        if value is None or not value.strip():
            return self.xmi.empty()
        if "${" in value:
            return self.pattern(value)
        return self.xmi.simple(value)

    def _connector(self, name: str, definition_id: str, event: str, version: str) -> tuple[etree._Element, etree._Element]:
        connector = self.xmi.element(
            "connectors",
            "process:Connector",
            name=name,
            definitionId=definition_id,
            event=event,
            ignoreErrors="true",
            definitionVersion=version,
        )
        configuration = self.xmi.element(
            "configuration",
            "connectorconfiguration:ConnectorConfiguration",
            definitionId=definition_id,
            version=version,
            modelVersion=CONNECTOR_MODEL_VERSION,
        )
        connector.append(configuration)
        return connector, configuration

    def rest(self, config: RestConfig, task_name: str) -> etree._Element:
        """REST connector fired when the task is entered.

        Args:
            config: REST call configuration after Bonita expression resolution
            task_name: Fallback connector name when the configuration has no id
        """
        request = config.request
        definition_id = rest_definition_id(request.method)
        connector, configuration = self._connector(
            config.id or task_name or "restConnector", definition_id, "ON_ENTER", REST_CONNECTOR_VERSION
        )
        media_type, charset = split_content_type(header_value(request.headers, "Content-Type"))

        parameter = self.xmi.connector_parameter
        configuration.append(parameter("url", self.xmi.simple(request.url)))
        configuration.append(parameter("contentType", self.xmi.simple(media_type)))
        configuration.append(parameter("charset", self.xmi.simple(charset)))
        body = serialize_body(request.body)
        if body:
            configuration.append(parameter("body", self.pattern(body)))
        self._rest_defaults(configuration)
        return connector

    def _rest_defaults(self, configuration: etree._Element) -> None:
        xmi = self.xmi
        defaults = [
            ("urlCookies", xmi.table_expression),
            ("urlHeaders", xmi.table_expression),
            ("add_bonita_context_headers", lambda: xmi.boolean(False)),
            ("bonita_activity_instance_id_header", lambda: xmi.simple("X-Bonita-Activity-Instance-Id")),
            ("bonita_process_instance_id_header", lambda: xmi.simple("X-Bonita-Process-Instance-Id")),
            ("bonita_root_process_instance_id_header", lambda: xmi.simple("X-Bonita-Root-Process-Instance-Id")),
            ("bonita_process_definition_id_header", lambda: xmi.simple("X-Bonita-Process-Definition-Id")),
            ("bonita_task_assignee_id_header", lambda: xmi.simple("X-Bonita-Task-Assignee-Id")),
            ("do_not_follow_redirect", lambda: xmi.boolean(False)),
            ("ignore_body", lambda: xmi.boolean(False)),
            ("fail_on_http_4xx", lambda: xmi.boolean(False)),
            ("fail_on_http_5xx", lambda: xmi.boolean(False)),
            ("failure_exception_codes", xmi.table_expression),
            ("retry_on_http_5xx", lambda: xmi.boolean(False)),
            ("retry_additional_codes", xmi.table_expression),
            ("max_body_content_printed", lambda: xmi.integer(1000)),
            ("sensitive_headers_printed", lambda: xmi.boolean(False)),
            ("TLS", lambda: xmi.boolean(True)),
            ("hostname_verifier", xmi.empty),
            ("trust_store_file", xmi.empty),
            ("trust_store_password", xmi.empty),
            ("key_store_file", xmi.empty),
            ("key_store_password", xmi.empty),
            ("auth_type", lambda: xmi.simple("NONE")),
            ("auth_username", xmi.empty),
            ("auth_password", xmi.empty),
            ("auth_host", xmi.empty),
            ("auth_port", lambda: xmi.integer(None)),
            ("auth_realm", xmi.empty),
            ("auth_preemptive", lambda: xmi.boolean(True)),
            ("oauth2_token_endpoint", xmi.empty),
            ("oauth2_client_id", xmi.empty),
            ("oauth2_client_secret", xmi.empty),
            ("oauth2_scope", xmi.empty),
            ("oauth2_token", xmi.empty),
            ("oauth2_code", xmi.empty),
            ("oauth2_code_verifier", xmi.empty),
            ("oauth2_redirect_uri", xmi.empty),
            ("proxy_protocol", lambda: xmi.simple("HTTP")),
            ("proxy_host", xmi.empty),
            ("proxy_port", lambda: xmi.integer(None)),
            ("proxy_username", xmi.empty),
            ("proxy_password", xmi.empty),
            ("automatic_proxy_resolution", lambda: xmi.boolean(False)),
            ("socket_timeout_ms", lambda: xmi.integer(60000)),
            ("connection_timeout_ms", lambda: xmi.integer(60000)),
            ("trust_strategy", lambda: xmi.simple("DEFAULT")),
        ]
        existing = {p.get("key") for p in configuration if p.tag == "parameters"}
        for key, build in defaults:
            if key not in existing:
                configuration.append(xmi.connector_parameter(key, build()))

    def email(self, email: EmailArtifact, smtp: SmtpSettings, task_name: str) -> etree._Element:
        """Email connector fired when the task finishes.

        Args:
            email: Email configuration and template after global resolution
            smtp: SMTP settings of the process configuration
            task_name: Fallback connector name when the configuration has no id
        """
        config = email.config
        headers = config.headers
        message = render_message(email.template_text, config.body.parameters)
        connector, configuration = self._connector(
            config.id or task_name or "emailConnector", "email", "ON_FINISH", EMAIL_CONNECTOR_VERSION
        )

        xmi = self.xmi
        parameters = [
            ("smtpHost", xmi.simple(smtp.host or "")),
            ("smtpPort", xmi.integer(smtp.port if smtp.port and smtp.port > 0 else None)),
            ("sslSupport", xmi.boolean(False)),
            ("starttlsSupport", xmi.boolean(True)),
            ("trustCertificate", xmi.boolean(False)),
            ("authType", xmi.simple("Basic authentication")),
            ("userName", xmi.simple(smtp.username or "")),
            ("password", xmi.simple(smtp.password or "")),
            ("oauth2AccessToken", xmi.empty()),
            ("from", self.value(headers.from_ or smtp.username or "")),
            ("returnPath", xmi.empty()),
            ("to", self.value(headers.to)),
            ("bcc", self.value(headers.bcc)),
            ("cc", self.value(headers.cc)),
            ("subject", self.value(headers.subject)),
            ("html", xmi.boolean(is_html(message))),
            ("message", self.pattern(message) if message.strip() else xmi.empty()),
            ("headers", xmi.table_expression()),
            ("charset", xmi.simple("UTF-8")),
            ("replyTo", self.value(headers.reply_to)),
            ("attachments", xmi.list_expression()),
        ]
        for key, expression in parameters:
            configuration.append(xmi.connector_parameter(key, expression))
        return connector
