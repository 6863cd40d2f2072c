"""Inquiry Router - conversation routing for an automotive service assistant.

This package classifies inbound customer messages and routes them to the
system or specialist best placed to answer:

- Classification: category, urgency and complexity from keyword tables,
  plus detection of explicit requests to reach a human
- Routing: destination, specialist assignment, response estimate and a
  tracked conversation thread per inquiry
- Diagnostics: detection of diagnostic trouble codes (DTCs) and lookup of
  their reference information

The classifier and router never raise; failures degrade to a generic answer.
"""

__version__ = "0.1.0"
