"""Tests for the shared agent plumbing."""

from langchain_core.messages import HumanMessage

from sync_platform.agents import SchemaMappingAgent


class TestInitialState:
    """Test the common starting state every agent builds."""

    def test_common_keys(self, message_bus):
        agent = SchemaMappingAgent(message_bus=message_bus)

        state = agent.initial_state("Map product to offer", threshold=0.5)

        assert isinstance(state["messages"][0], HumanMessage)
        assert state["messages"][0].content == "Map product to offer"
        assert state["task_id"].startswith("schema-mapping-")
        assert state["context"] == {}
        assert state["result"] is None
        assert state["error"] is None
        assert state["threshold"] == 0.5

    def test_task_prefix_and_context(self, message_bus):
        agent = SchemaMappingAgent(message_bus=message_bus)
        context = {"max_samples": 3}

        state = agent.initial_state("Discover", task_prefix="discovery", context=context)
        state["context"]["extra"] = True

        assert state["task_id"].startswith("discovery-")
        assert context == {"max_samples": 3}

    def test_task_ids_are_unique(self, message_bus):
        agent = SchemaMappingAgent(message_bus=message_bus)

        assert agent.initial_state("a")["task_id"] != agent.initial_state("a")["task_id"]
