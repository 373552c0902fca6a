"""Tests for conversation engine adapters (sync-only where possible)."""

from unittest.mock import MagicMock
from uuid import uuid4

import httpx
import pytest

from booking_engine.agents.models import AgentChannel
from booking_engine.agents.repository import AgentInfo
from booking_engine.conversation.config import ConversationConfig, ConversationProviderType
from booking_engine.conversation.factory import create_conversation_engine
from booking_engine.conversation.interface import (
    CallPlacementError,
    OutboundCallRequest,
    build_call_request,
)
from booking_engine.conversation.mock_adapter import MockConversationEngine
from booking_engine.conversation.retell_adapter import RetellAdapter
from booking_engine.leads.lifecycle import LeadStatus
from booking_engine.leads.records import LeadRecord
from booking_engine.shared.exceptions import (
    AgentNotConfiguredError,
    ConfigurationError,
    InvalidContactError,
)


@pytest.fixture
def retell_config() -> ConversationConfig:
    return ConversationConfig(
        provider_type=ConversationProviderType.RETELL,
        api_base_url="https://api.retell.test/",
        api_key="key_test_123",
        from_number="+5511900000000",
    )


@pytest.fixture
def lead() -> LeadRecord:
    return LeadRecord(
        id=uuid4(),
        owner_id=uuid4(),
        status=LeadStatus.NO_ANSWER,
        name="Maria Silva",
        phone="(11) 98765-4321",
        agent_variables={"suggested_date": "11/20/2025", "service": "limpeza"},
    )


@pytest.fixture
def agent(lead: LeadRecord) -> AgentInfo:
    return AgentInfo(
        id=uuid4(),
        owner_id=lead.owner_id,
        channel=AgentChannel.VOICE,
        display_name="Sofia",
        external_agent_id="agent_ext_1",
    )


@pytest.fixture
def call_request(lead: LeadRecord, agent: AgentInfo) -> OutboundCallRequest:
    return build_call_request(lead, agent, "+5511900000000")


class TestBuildCallRequest:
    def test_normalizes_phone_and_flattens_variables(self, call_request: OutboundCallRequest) -> None:
        assert call_request.to_number == "+5511987654321"
        assert call_request.agent_external_id == "agent_ext_1"
        variables = call_request.dynamic_variables
        assert variables["first_name"] == "Maria"
        assert variables["phone_last4"] == "4321"
        assert variables["suggested_date"] == "2025-11-20"
        assert variables["service"] == "limpeza"

    def test_agent_without_engine_handle(self, lead: LeadRecord, agent: AgentInfo) -> None:
        unusable = AgentInfo(id=agent.id, owner_id=agent.owner_id, channel=AgentChannel.VOICE, display_name="x")
        with pytest.raises(AgentNotConfiguredError):
            build_call_request(lead, unusable, "+5511900000000")
        with pytest.raises(AgentNotConfiguredError):
            build_call_request(lead, None, "+5511900000000")

    def test_missing_caller_number(self, lead: LeadRecord, agent: AgentInfo) -> None:
        with pytest.raises(ConfigurationError):
            build_call_request(lead, agent, "")

    def test_bad_phone(self, agent: AgentInfo) -> None:
        bad = LeadRecord(id=uuid4(), owner_id=agent.owner_id, status=LeadStatus.NO_ANSWER, phone=None)
        with pytest.raises(InvalidContactError):
            build_call_request(bad, agent, "+5511900000000")


class TestRetellAdapter:
    def test_place_call_success(
        self,
        retell_config: ConversationConfig,
        call_request: OutboundCallRequest,
    ) -> None:
        mock_client = MagicMock(spec=httpx.Client)
        mock_client.post.return_value = httpx.Response(
            status_code=201,
            json={"call_id": "call_abc", "call_status": "registered"},
        )

        adapter = RetellAdapter(config=retell_config, http_client=mock_client)
        placement = adapter.initiate_call_sync(call_request)

        assert placement.call_id == "call_abc"
        assert placement.status == "registered"

        url = mock_client.post.call_args[0][0]
        kwargs = mock_client.post.call_args[1]
        assert url == "https://api.retell.test/v2/create-phone-call"
        assert kwargs["headers"]["Authorization"] == "Bearer key_test_123"
        assert kwargs["json"]["override_agent_id"] == "agent_ext_1"
        assert kwargs["json"]["to_number"] == "+5511987654321"
        assert kwargs["json"]["retell_llm_dynamic_variables"]["first_name"] == "Maria"

    def test_place_call_api_error(
        self,
        retell_config: ConversationConfig,
        call_request: OutboundCallRequest,
    ) -> None:
        mock_client = MagicMock(spec=httpx.Client)
        mock_client.post.return_value = httpx.Response(
            status_code=422,
            json={"message": "agent not found"},
        )

        adapter = RetellAdapter(config=retell_config, http_client=mock_client)

        with pytest.raises(CallPlacementError) as exc_info:
            adapter.initiate_call_sync(call_request)

        assert "agent not found" in str(exc_info.value)
        assert exc_info.value.error_code == "422"

    def test_place_call_http_error(
        self,
        retell_config: ConversationConfig,
        call_request: OutboundCallRequest,
    ) -> None:
        mock_client = MagicMock(spec=httpx.Client)
        mock_client.post.side_effect = httpx.ConnectError("Connection refused")

        adapter = RetellAdapter(config=retell_config, http_client=mock_client)

        with pytest.raises(CallPlacementError) as exc_info:
            adapter.initiate_call_sync(call_request)

        assert exc_info.value.error_code == "HTTP_ERROR"

    def test_missing_api_key_is_configuration_error(self, call_request: OutboundCallRequest) -> None:
        adapter = RetellAdapter(
            config=ConversationConfig(api_key="", from_number="+5511900000000"),
            http_client=MagicMock(spec=httpx.Client),
        )
        with pytest.raises(ConfigurationError):
            adapter.initiate_call_sync(call_request)

    @pytest.mark.asyncio
    async def test_place_call_runs_through_worker_thread(
        self,
        retell_config: ConversationConfig,
        lead: LeadRecord,
        agent: AgentInfo,
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"call_id": "call_async"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        adapter = RetellAdapter(config=retell_config, http_client=client)

        placement = await adapter.place_call(lead, agent)

        assert placement.call_id == "call_async"
        client.close()


class TestMockConversationEngine:
    def test_records_and_numbers_calls(self, call_request: OutboundCallRequest) -> None:
        engine = MockConversationEngine()

        first = engine.initiate_call_sync(call_request)
        second = engine.initiate_call_sync(call_request)

        assert first.call_id == "MOCK_CALL_000001"
        assert second.call_id == "MOCK_CALL_000002"
        assert engine.get_last_call() == call_request

    def test_configured_failure(self, call_request: OutboundCallRequest) -> None:
        engine = MockConversationEngine()
        engine.configure_failure(error_code="DOWN")

        with pytest.raises(CallPlacementError) as exc_info:
            engine.initiate_call_sync(call_request)
        assert exc_info.value.error_code == "DOWN"

        engine.reset()
        assert engine.initiate_call_sync(call_request).call_id == "MOCK_CALL_000001"


class TestFactory:
    def test_retell(self, retell_config: ConversationConfig) -> None:
        assert isinstance(create_conversation_engine(retell_config), RetellAdapter)

    def test_mock_uses_configured_number(self) -> None:
        engine = create_conversation_engine(
            ConversationConfig(provider_type=ConversationProviderType.MOCK, from_number="+5511911111111")
        )
        assert isinstance(engine, MockConversationEngine)
        assert engine.from_number == "+5511911111111"
