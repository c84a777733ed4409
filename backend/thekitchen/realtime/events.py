"""Socket.IO event names."""

# client -> server
CREATE_ROOM = "createRoom"
JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"
START_GAME = "startGame"
SUBMIT_CONTENT = "submitContent"
START_VOTING = "startVoting"
CAST_VOTE = "castVote"
RESET_TO_LOBBY = "resetToLobby"
UPDATE_SETTINGS = "updateSettings"

# server -> client
CONNECTED = "connected"
ROOM_CREATED = "roomCreated"
ROOM_JOINED = "roomJoined"
ROOM_LEFT = "roomLeft"
ROOM_UPDATE = "roomUpdate"
ROOM_CLOSED = "roomClosed"
PLAYER_JOINED = "playerJoined"
PLAYER_LEFT = "playerLeft"
PLAYER_RECONNECTED = "playerReconnected"
PLAYER_DISCONNECTED = "playerDisconnected"
GAME_STARTED = "gameStarted"
VOTING_STARTED = "votingStarted"
RESULTS_READY = "resultsReady"
RETURNED_TO_LOBBY = "returnedToLobby"
SUBMISSION_SUCCESS = "submissionSuccess"
SUBMISSION_UPDATE = "submissionUpdate"
VOTE_SUCCESS = "voteSuccess"
VOTE_UPDATE = "voteUpdate"
ERROR = "error"
