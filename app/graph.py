"""
LangGraph orchestration for the invoice generation pipeline.
Defines the graph structure and node order.
"""

from langgraph.graph import StateGraph, END
from app.state import GenerationState
from app.agents.scenario_classifier import scenario_classifier_agent
from app.agents.issue_policy import issue_policy_agent
from app.agents.match_recorder import match_recorder_agent


def build_generation_graph():
    """
    Build the LangGraph workflow for generating one invoice.

    Flow:
    1. Scenario Classifier Agent - Build invoice lines and variances
    2. Issue Policy Agent - Decide has_issues and synthesize the exception
    3. Match Recorder Agent - Record line-level matching activity

    A matching error raised by any node propagates out of the graph run.
    """

    graph = StateGraph(GenerationState)

    # Add agent nodes
    graph.add_node("scenario_classifier", scenario_classifier_agent)
    graph.add_node("issue_policy", issue_policy_agent)
    graph.add_node("match_recorder", match_recorder_agent)

    # Set the entry point
    graph.set_entry_point("scenario_classifier")

    graph.add_edge("scenario_classifier", "issue_policy")
    graph.add_edge("issue_policy", "match_recorder")
    graph.add_edge("match_recorder", END)

    return graph.compile()


# Global compiled graph (singleton)
_generation_graph = None


def get_generation_graph():
    """Get or create the compiled generation graph."""
    global _generation_graph
    if _generation_graph is None:
        _generation_graph = build_generation_graph()
    return _generation_graph
