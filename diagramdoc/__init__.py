"""Diagram Documentation Generator.

An LLM-powered tool that explains a source file in Markdown and embeds
Mermaid and PlantUML diagrams, validating and repairing each diagram
before it reaches the reader.
"""

__version__ = "0.1.0"
