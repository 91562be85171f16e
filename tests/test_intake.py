import json
import re
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from career_relay.config import DEFAULT_CRM_FIELD_CODES
from career_relay.errors import CrmRequestFailed
from career_relay.intake import WebhookIntake
from career_relay.models.crm import CONTACT_ANSWER_FIELDS, CONTACT_PHONE_BACKUP, CONTACT_USERNAME
from career_relay.relay import FileRelayService

from .conftest import PUBLIC_BASE

RESUME = DEFAULT_CRM_FIELD_CODES["resume"]
VOICE_1 = DEFAULT_CRM_FIELD_CODES["voice_answer_1"]
VOICE_2 = DEFAULT_CRM_FIELD_CODES["voice_answer_2"]
FILE_ID = "BQACAgIAAxkBAAIBQ2Zf1v3xK9"
VOICE_ID = "AwACAgIAAxkBAAIBR2Zf_voice"
FILES = {
    FILE_ID: ("documents/file_1.pdf", b"%PDF resume"),
    VOICE_ID: ("voice/file_2.oga", b"OggS voice"),
}

PAYLOAD = {
    "full_name_uzbek": "Ali Valiyev",
    "phone_number_uzbek": "90 123 45 67",
    "age_uzbek": "25",
    "city_uzbek": "Toshkent",
    "degree": "Bakalavr",
    "position_uz": "Sotuvchi form_variable_POS1",
    "username": '<a href="https://t.me/ali">@ali</a>',
    "resume": FILE_ID,
    "phase2_q_1": "Ha, tajribam bor",
    "phase2_q_2": VOICE_ID,
    "utm_campaign": "dropped",
}


def make_crm(contact_id: str | None = None, deal_id: str | None = None) -> MagicMock:
    crm = MagicMock()
    crm.find_contact_by_phone = AsyncMock(return_value=contact_id)
    crm.add_contact = AsyncMock(return_value="101")
    crm.update_contact = AsyncMock()
    crm.find_deal_by_contact = AsyncMock(return_value=deal_id)
    crm.add_deal = AsyncMock(return_value="555")
    crm.update_deal = AsyncMock()
    return crm


@pytest.fixture
def make_intake(make_relay: Callable[..., FileRelayService]) -> Callable[[MagicMock], WebhookIntake]:
    def _make(crm: MagicMock) -> WebhookIntake:
        return WebhookIntake(crm, make_relay(FILES), DEFAULT_CRM_FIELD_CODES)

    return _make


@pytest.mark.asyncio
async def test_new_contact(make_intake: Callable[[MagicMock], WebhookIntake]) -> None:
    crm = make_crm()

    result = await make_intake(crm).process(PAYLOAD)

    assert result.status == "processed"
    assert (result.contact_id, result.deal_id) == ("101", "555")
    assert "utm_campaign" not in result.fields

    crm.find_contact_by_phone.assert_awaited_with("+998901234567")
    contact: dict[str, Any] = crm.add_contact.await_args.args[0]
    assert contact["NAME"] == "Ali Valiyev"
    assert contact["PHONE"] == [{"VALUE": "+998901234567", "VALUE_TYPE": "MOBILE"}]
    assert contact[CONTACT_PHONE_BACKUP] == "+998901234567"
    assert contact[CONTACT_USERNAME] == "@ali"
    assert contact[CONTACT_ANSWER_FIELDS[0]] == "Ha, tajribam bor"
    assert contact[CONTACT_ANSWER_FIELDS[1]] == VOICE_ID
    assert contact["COMMENTS"] == f"Resume: {FILE_ID}\nThe Age is 25"
    assert RESUME not in contact

    # Files are relayed after the contact exists, so names carry its id.
    contact_id, files = crm.update_contact.await_args.args
    assert contact_id == "101"
    assert set(files) == {RESUME, VOICE_2, CONTACT_ANSWER_FIELDS[1]}
    assert re.fullmatch(re.escape(PUBLIC_BASE) + r"/contact-101_resume_[\d-]{10}_[0-9a-f]{8}\.pdf", files[RESUME])
    assert files[VOICE_2].startswith(f"{PUBLIC_BASE}/contact-101_voice_answer_2_")
    assert files[CONTACT_ANSWER_FIELDS[1]] == f"Voice answer: {files[VOICE_2]}"

    deal, params = crm.add_deal.await_args.args
    assert deal == {
        "TITLE": "HR BOT - Ali Valiyev",
        "CATEGORY_ID": "55",
        "STATUS_ID": "C55:NEW",
        "UTM_SOURCE": "hr_telegram_bot",
        "CONTACT_ID": "101",
        CONTACT_USERNAME: "@ali",
    }
    assert params == {"REGISTER_SONET_EVENT": "Y"}


@pytest.mark.asyncio
async def test_existing_contact_and_deal(make_intake: Callable[[MagicMock], WebhookIntake]) -> None:
    crm = make_crm(contact_id="42", deal_id="900")

    result = await make_intake(crm).process(PAYLOAD)

    assert (result.contact_id, result.deal_id) == ("42", "900")
    crm.add_contact.assert_not_awaited()
    crm.update_contact.assert_awaited_once()
    contact_id, fields = crm.update_contact.await_args.args
    assert contact_id == "42"
    assert fields["NAME"] == "Ali Valiyev"
    assert fields[RESUME].startswith(f"{PUBLIC_BASE}/contact-42_resume_")
    crm.update_deal.assert_awaited_once()
    crm.add_deal.assert_not_awaited()


@pytest.mark.asyncio
async def test_relay_failure_keeps_file_id(make_intake: Callable[[MagicMock], WebhookIntake]) -> None:
    crm = make_crm()

    await make_intake(crm).process({"full_name_uzbek": "Ali", "resume": "AgADBAADexpiredFileId"})

    crm.update_contact.assert_awaited_with("101", {RESUME: "AgADBAADexpiredFileId"})


@pytest.mark.asyncio
@pytest.mark.parametrize("answer", ["Universitetda", "Tajribasiz"])
async def test_single_word_answer_stays_a_text_answer(
    make_intake: Callable[[MagicMock], WebhookIntake], answer: str
) -> None:
    crm = make_crm(contact_id="42")

    await make_intake(crm).process({"full_name_uzbek": "Ali", "phone_number_uzbek": "901234567", "phase2_q_1": answer})

    contact_id, fields = crm.update_contact.await_args.args
    assert contact_id == "42"
    assert fields[CONTACT_ANSWER_FIELDS[0]] == answer
    assert VOICE_1 not in fields


@pytest.mark.asyncio
async def test_raw_body_with_bom_and_inner_quotes(make_intake: Callable[[MagicMock], WebhookIntake]) -> None:
    crm = make_crm()
    body = '\ufeff{"full_name_uzbek": "Ali "Vali" Karimov", "phone_number_uzbek": "+998901234567",}'

    result = await make_intake(crm).process(body.encode("utf-8"))

    assert result.status == "processed"
    assert result.fields["full_name_uzbek"] == 'Ali "Vali" Karimov'
    assert crm.add_deal.await_args.args[0]["TITLE"] == 'HR BOT - Ali "Vali" Karimov'


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["just some text", json.dumps([1, 2])])
async def test_unparseable_body(make_intake: Callable[[MagicMock], WebhookIntake], body: str) -> None:
    crm = make_crm()

    result = await make_intake(crm).process(body)

    assert result.status == "unparsed"
    assert result.raw == body
    crm.find_contact_by_phone.assert_not_awaited()


@pytest.mark.asyncio
async def test_crm_failure(make_intake: Callable[[MagicMock], WebhookIntake]) -> None:
    crm = make_crm()
    crm.find_contact_by_phone.side_effect = CrmRequestFailed("crm.contact.list failed", method="crm.contact.list")

    result = await make_intake(crm).process(PAYLOAD)

    assert result.status == "failed"
    assert "crm.contact.list failed" in result.message
    crm.add_deal.assert_not_awaited()
