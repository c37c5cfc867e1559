import logging

from .base import Tensor
from .base import BaseModule
from .base import Scale
from .base import Identity
from .base import Linear
from .base import linear_layer
from .activation import ReLU
from .activation import Logistic
from .activation import Softmax
from .dropout import Dropout
from .filter import ConvConfig
from .filter import Convolutional
from .filter import MaxPooling
from .filter import calc_out_spatial_dim
from .norm import Normaliser
from .random import AddNoiseGaussian
from .random import AddNoiseUniform
from .autoencoder import DenoisingAutoencoder
from .compose import Stack
from .compose import Split
from .compose import Combine
from .compose import Function
from .optimizers import SGD
from .optimizers import Momentum
from .optimizers import optimise
from .errors import LayerwiseError
from .errors import NoOutputAvailable
from .errors import NoInputGradientAvailable
from .errors import ShapeMismatch
from .errors import InvalidConfiguration
from .errors import GradientNotSupported


logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
