import os

own_dir = os.path.dirname(__file__)

with open(os.path.join(own_dir, 'VERSION')) as f:
    __version__ = f.read().strip()
