from svcrest.avails import constants as const
from svcrest.avails import useables as use
from svcrest.avails.bases import *
from svcrest.avails.correlation import CorrelationTable, PendingSolicit
from svcrest.avails.exceptions import *
from svcrest.avails.wire import ID, KIND, KINDS, ServiceMessage
