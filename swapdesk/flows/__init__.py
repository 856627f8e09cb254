# swapdesk/flows/__init__.py

from swapdesk.flows import registry
from swapdesk.flows import swap
from swapdesk.flows import limit_order
from swapdesk.flows import withdraw

# any new flows must be imported above to be registered
