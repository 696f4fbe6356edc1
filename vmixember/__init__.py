"""vMix to Ember+ bridge.

Exposes vMix tally and activity state as a control tree and forwards tree
function invocations to vMix as TCP API commands.
"""

__version__ = "0.1.0"
