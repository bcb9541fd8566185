"""
Weather-Agent - a conversational assistant driving a language model through tool calls.
"""

__version__ = "0.1.0"
