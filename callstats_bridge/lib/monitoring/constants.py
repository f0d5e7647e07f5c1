UTF_8 = 'UTF-8'

# HTTP method strings
HTTP_POST = 'POST'

# Pub/Sub ACK or NACK
PUB_SUB_ACK_TYPE_ACK = 'ack'
PUB_SUB_ACK_TYPE_NACK = 'nack'

# Conference lifecycle event types, as tagged in the 'type' field of every event.
EVENT_TYPES = ['user', 'subscriber', 'stream', 'screenshare', 'channel', 'pluginHandle', 'error']
# A participant joined or left the conference
EVENT_TYPE_USER = EVENT_TYPES[0]
# Subscriber handle events. Nothing is reported for these for now.
EVENT_TYPE_SUBSCRIBER = EVENT_TYPES[1]
# A local or remote media stream was attached to a peer connection
EVENT_TYPE_STREAM = EVENT_TYPES[2]
# Screen sharing started or stopped
EVENT_TYPE_SCREENSHARE = EVENT_TYPES[3]
# Audio or video channel toggled (mute/unmute, pause/resume)
EVENT_TYPE_CHANNEL = EVENT_TYPES[4]
# Media server plugin handle attached/detached
EVENT_TYPE_PLUGIN_HANDLE = EVENT_TYPES[5]
# A WebRTC operation failed
EVENT_TYPE_ERROR = EVENT_TYPES[6]

# values of event.data fields inspected during classification
USER_STATUS_JOINING = 'joining'
STREAM_LOCAL = 'local'
STREAM_REMOTE = 'remote'
STREAM_FOR_MAIN = 'main'
STREAM_FOR_SUBSCRIBER = 'subscriber'
SCREENSHARE_STATUS_STARTED = 'started'
SCREENSHARE_STATUS_STOPPED = 'stopped'
CHANNEL_AUDIO = 'audio'
PLUGIN_HANDLE_STATUS_DETACHED = 'detached'

# Connection roles. A (conference id, role) pair identifies at most one registered connection.
CONNECTION_ROLES = ['local-main', 'remote-subscriber']
# The local publisher connection
CONNECTION_ROLE_LOCAL_MAIN = CONNECTION_ROLES[0]
# The connection receiving remote media through the media server
CONNECTION_ROLE_REMOTE_SUBSCRIBER = CONNECTION_ROLES[1]

# event.data['for'] values mapped to the connection role they designate
CONNECTION_ROLE_BY_HANDLE_FOR = {
    STREAM_FOR_MAIN: CONNECTION_ROLE_LOCAL_MAIN,
    STREAM_FOR_SUBSCRIBER: CONNECTION_ROLE_REMOTE_SUBSCRIBER,
}

# Fabric (registered peer connection) events understood by the monitoring backend
FABRIC_EVENTS = [
    'fabricHold',
    'fabricResume',
    'audioMute',
    'audioUnmute',
    'videoPause',
    'videoResume',
    'fabricTerminated',
    'screenShareStart',
    'screenShareStop',
    'dominantSpeaker',
    'activeDeviceList',
]
FABRIC_EVENT_AUDIO_MUTE = FABRIC_EVENTS[2]
FABRIC_EVENT_AUDIO_UNMUTE = FABRIC_EVENTS[3]
FABRIC_EVENT_VIDEO_PAUSE = FABRIC_EVENTS[4]
FABRIC_EVENT_VIDEO_RESUME = FABRIC_EVENTS[5]
FABRIC_EVENT_TERMINATED = FABRIC_EVENTS[6]
FABRIC_EVENT_SCREEN_SHARE_START = FABRIC_EVENTS[7]
FABRIC_EVENT_SCREEN_SHARE_STOP = FABRIC_EVENTS[8]

# WebRTC operations whose failures can be reported to the monitoring backend
WEBRTC_FUNCTIONS = [
    'getUserMedia',
    'createOffer',
    'createAnswer',
    'setLocalDescription',
    'setRemoteDescription',
    'addIceCandidate',
    'iceConnectionFailure',
    'signalingError',
    'applicationLog',
]
WEBRTC_FUNCTION_CREATE_OFFER = WEBRTC_FUNCTIONS[1]
WEBRTC_FUNCTION_CREATE_ANSWER = WEBRTC_FUNCTIONS[2]

# Fabric usage modes. 'multiplex' means one transport carries several media streams.
FABRIC_USAGES = ['multiplex', 'audio', 'video', 'screen', 'data', 'unbundled']
FABRIC_USAGE_MULTIPLEX = FABRIC_USAGES[0]

# Status codes passed to the backend initialize / add connection completion callbacks
BACKEND_STATUS_CODES = ['success', 'httpError', 'authError', 'appConnectivityError']
BACKEND_STATUS_SUCCESS = BACKEND_STATUS_CODES[0]
# The backend answered with a non-2xx response other than an auth failure
BACKEND_STATUS_HTTP_ERROR = BACKEND_STATUS_CODES[1]
# The backend rejected the app credentials
BACKEND_STATUS_AUTH_ERROR = BACKEND_STATUS_CODES[2]
# The backend could not be reached, even after retries
BACKEND_STATUS_APP_CONNECTIVITY_ERROR = BACKEND_STATUS_CODES[3]

# Initialization status of a monitoring session
INITIALIZATION_STATUSES = ['not_initialized', 'pending', 'initialized', 'failed']
# initialize has never been invoked
INITIALIZATION_STATUS_NOT_INITIALIZED = INITIALIZATION_STATUSES[0]
# initialize was invoked and its callback has not fired yet
INITIALIZATION_STATUS_PENDING = INITIALIZATION_STATUSES[1]
# the backend confirmed the session
INITIALIZATION_STATUS_INITIALIZED = INITIALIZATION_STATUSES[2]
# the backend reported an error; a later "joining" event may retry
INITIALIZATION_STATUS_FAILED = INITIALIZATION_STATUSES[3]

# Registration status of a connection
REGISTRATION_STATUSES = ['pending', 'registered', 'failed']
REGISTRATION_STATUS_PENDING = REGISTRATION_STATUSES[0]
REGISTRATION_STATUS_REGISTERED = REGISTRATION_STATUSES[1]
REGISTRATION_STATUS_FAILED = REGISTRATION_STATUSES[2]

# Stats report types delivered to the stats callback
STATS_REPORT_TYPE_INBOUND = 'inbound'
STATS_REPORT_TYPE_OUTBOUND = 'outbound'

# Request payload signature custom HTTP header name
REQUEST_SIGNATURE_HEADER_NAME = 'X-Signature'
