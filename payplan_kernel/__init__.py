"""
payplan kernel

Value objects, the installment schedule model, typed exceptions, structured
logging and the clock abstraction shared by every other payplan package.
The kernel imports nothing from payplan_engines, payplan_services or
payplan_config.
"""

__version__ = "0.1.0"
