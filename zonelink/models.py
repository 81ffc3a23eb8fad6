from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zonelink.types import SubscriptionId, UPnPPropertyName, UPnPServiceName


# -----------------------------------------------------------------------------
# Application models
#
# Attribute aliases are the element/attribute names used by the zone player's
# XML documents, which allows the event decoders to build models directly from
# the XML without a translation table.
# -----------------------------------------------------------------------------

# Device description ----------------------------------------------------------


class ServiceDescription(BaseModel):
    """A single <service> entry from a device description."""

    service_type: str
    service_id: str
    control_url: str | None = None
    event_sub_url: str | None = None
    scpd_url: str | None = None


class DeviceDescription(BaseModel):
    """The parts of a zone player's device description document zonelink uses."""

    device_type: str | None = None
    friendly_name: str | None = None
    manufacturer: str | None = None
    model_name: str | None = None
    model_number: str | None = None
    model_description: str | None = None
    serial_number: str | None = None
    udn: str | None = None
    room_name: str | None = None
    display_name: str | None = None
    software_version: str | None = None
    hardware_version: str | None = None
    mac_address: str | None = None
    services: list[ServiceDescription] = []


# Zone groups -----------------------------------------------------------------


class ZoneGroupMember(BaseModel):
    """A zone player within a zone group."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uuid: str = Field(alias="UUID")
    location: str | None = Field(None, alias="Location")
    zone_name: str | None = Field(None, alias="ZoneName")
    icon: str | None = Field(None, alias="Icon")
    configuration: str | None = Field(None, alias="Configuration")
    software_version: str | None = Field(None, alias="SoftwareVersion")
    sw_gen: str | None = Field(None, alias="SWGen")
    min_compatible_version: str | None = Field(None, alias="MinCompatibleVersion")
    legacy_compatible_version: str | None = Field(
        None, alias="LegacyCompatibleVersion"
    )
    channel_map_set: str | None = Field(None, alias="ChannelMapSet")
    boot_seq: str | None = Field(None, alias="BootSeq")
    tv_configuration_error: str | None = Field(None, alias="TVConfigurationError")
    hdmi_cec_available: str | None = Field(None, alias="HdmiCecAvailable")
    wireless_mode: str | None = Field(None, alias="WirelessMode")
    wireless_leaf_only: str | None = Field(None, alias="WirelessLeafOnly")
    channel_freq: str | None = Field(None, alias="ChannelFreq")
    behind_wifi_extender: str | None = Field(None, alias="BehindWifiExtender")
    wifi_enabled: str | None = Field(None, alias="WifiEnabled")
    eth_link: str | None = Field(None, alias="EthLink")
    orientation: str | None = Field(None, alias="Orientation")
    room_calibration_state: str | None = Field(None, alias="RoomCalibrationState")
    secure_reg_state: str | None = Field(None, alias="SecureRegState")
    voice_config_state: str | None = Field(None, alias="VoiceConfigState")
    mic_enabled: str | None = Field(None, alias="MicEnabled")
    air_play_enabled: str | None = Field(None, alias="AirPlayEnabled")
    idle_state: str | None = Field(None, alias="IdleState")
    more_info: str | None = Field(None, alias="MoreInfo")
    ssl_port: str | None = Field(None, alias="SSLPort")
    hhssl_port: str | None = Field(None, alias="HHSSLPort")
    invisible: str | None = Field(None, alias="Invisible")
    virtual_line_in_source: str | None = Field(None, alias="VirtualLineInSource")


class ZoneGroup(BaseModel):
    """A group of zone players, led by a coordinator."""

    model_config = ConfigDict(populate_by_name=True)

    coordinator: str = Field(alias="Coordinator")
    id: str = Field(alias="ID")
    members: list[ZoneGroupMember] = []


class ZoneGroupState(BaseModel):
    """The household's zone group topology."""

    groups: list[ZoneGroup] = []
    vanished_devices: list[str] = []


# Events ----------------------------------------------------------------------


class ZoneLinkEvent(BaseModel):
    """Base for all typed events delivered to subscription event handlers.

    Every event is tagged with the UPnP service and state variable which
    produced it.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    service: UPnPServiceName
    name: UPnPPropertyName


class StateVariableEvent(ZoneLinkEvent):
    """A scalar state variable change, with its value in its Python type."""

    value: Any = None


class AVTransportLastChange(ZoneLinkEvent):
    """A decoded AVTransport LastChange event."""

    service: Literal["AVTransport"] = "AVTransport"
    name: Literal["LastChange"] = "LastChange"

    instance_id: int = Field(0, alias="InstanceID")
    transport_state: str | None = Field(None, alias="TransportState")
    current_play_mode: str | None = Field(None, alias="CurrentPlayMode")
    current_crossfade_mode: str | None = Field(None, alias="CurrentCrossfadeMode")
    number_of_tracks: int | None = Field(None, alias="NumberOfTracks")
    current_track: int | None = Field(None, alias="CurrentTrack")
    current_section: int | None = Field(None, alias="CurrentSection")
    current_track_uri: str | None = Field(None, alias="CurrentTrackURI")
    current_track_duration: str | None = Field(None, alias="CurrentTrackDuration")
    current_track_metadata: str | None = Field(None, alias="CurrentTrackMetaData")
    next_track_uri: str | None = Field(None, alias="NextTrackURI")
    next_track_metadata: str | None = Field(None, alias="NextTrackMetaData")
    enqueued_transport_uri: str | None = Field(None, alias="EnqueuedTransportURI")
    enqueued_transport_uri_metadata: str | None = Field(
        None, alias="EnqueuedTransportURIMetaData"
    )
    playback_storage_medium: str | None = Field(None, alias="PlaybackStorageMedium")
    av_transport_uri: str | None = Field(None, alias="AVTransportURI")
    av_transport_uri_metadata: str | None = Field(None, alias="AVTransportURIMetaData")
    next_av_transport_uri: str | None = Field(None, alias="NextAVTransportURI")
    next_av_transport_uri_metadata: str | None = Field(
        None, alias="NextAVTransportURIMetaData"
    )
    current_transport_actions: str | None = Field(None, alias="CurrentTransportActions")
    current_valid_play_modes: str | None = Field(None, alias="CurrentValidPlayModes")
    direct_control_client_id: str | None = Field(None, alias="DirectControlClientID")
    direct_control_is_suspended: str | None = Field(
        None, alias="DirectControlIsSuspended"
    )
    direct_control_account_id: str | None = Field(None, alias="DirectControlAccountID")
    transport_status: str | None = Field(None, alias="TransportStatus")
    sleep_timer_generation: str | None = Field(None, alias="SleepTimerGeneration")
    alarm_running: str | None = Field(None, alias="AlarmRunning")
    snooze_running: str | None = Field(None, alias="SnoozeRunning")
    restart_pending: str | None = Field(None, alias="RestartPending")
    transport_play_speed: str | None = Field(None, alias="TransportPlaySpeed")
    current_media_duration: str | None = Field(None, alias="CurrentMediaDuration")
    record_storage_medium: str | None = Field(None, alias="RecordStorageMedium")
    possible_playback_storage_media: str | None = Field(
        None, alias="PossiblePlaybackStorageMedia"
    )
    possible_record_storage_media: str | None = Field(
        None, alias="PossibleRecordStorageMedia"
    )
    record_medium_write_status: str | None = Field(
        None, alias="RecordMediumWriteStatus"
    )
    current_record_quality_mode: str | None = Field(
        None, alias="CurrentRecordQualityMode"
    )
    possible_record_quality_modes: str | None = Field(
        None, alias="PossibleRecordQualityModes"
    )

    @field_validator(
        "number_of_tracks", "current_track", "current_section", mode="before"
    )
    @classmethod
    def empty_to_none(cls, value):
        return None if value == "" else value


class RenderingControlLastChange(ZoneLinkEvent):
    """A decoded RenderingControl LastChange event.

    Channel-specific variables (volume, mute, loudness) are keyed by channel
    name, e.g. {"Master": 32, "LF": 100, "RF": 100}.
    """

    service: Literal["RenderingControl"] = "RenderingControl"
    name: Literal["LastChange"] = "LastChange"

    instance_id: int = Field(0, alias="InstanceID")
    volume: dict[str, int] = Field({}, alias="Volume")
    mute: dict[str, bool] = Field({}, alias="Mute")
    loudness: dict[str, bool] = Field({}, alias="Loudness")
    bass: int | None = Field(None, alias="Bass")
    treble: int | None = Field(None, alias="Treble")
    output_fixed: bool | None = Field(None, alias="OutputFixed")
    speaker_size: int | None = Field(None, alias="SpeakerSize")
    sub_gain: int | None = Field(None, alias="SubGain")
    sub_crossover: str | None = Field(None, alias="SubCrossover")
    sub_polarity: str | None = Field(None, alias="SubPolarity")
    sub_enabled: bool | None = Field(None, alias="SubEnabled")
    sonar_enabled: bool | None = Field(None, alias="SonarEnabled")
    sonar_calibration_available: bool | None = Field(
        None, alias="SonarCalibrationAvailable"
    )
    preset_name_list: str | None = Field(None, alias="PresetNameList")

    @field_validator(
        "bass",
        "treble",
        "output_fixed",
        "speaker_size",
        "sub_gain",
        "sub_enabled",
        "sonar_enabled",
        "sonar_calibration_available",
        mode="before",
    )
    @classmethod
    def empty_to_none(cls, value):
        return None if value == "" else value


class QueueState(BaseModel):
    """The state of a single queue, as reported by a Queue LastChange event."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    queue_id: int = Field(alias="QueueID")
    update_id: int | None = Field(None, alias="UpdateID")
    curated: bool | None = Field(None, alias="Curated")
    queue_owner_id: str | None = Field(None, alias="QueueOwnerID")


class QueueLastChange(ZoneLinkEvent):
    """A decoded Queue LastChange event."""

    service: Literal["Queue"] = "Queue"
    name: Literal["LastChange"] = "LastChange"

    queues: list[QueueState] = []


class ZoneGroupStateEvent(ZoneLinkEvent):
    """A decoded ZoneGroupTopology ZoneGroupState event."""

    service: Literal["ZoneGroupTopology"] = "ZoneGroupTopology"
    name: Literal["ZoneGroupState"] = "ZoneGroupState"

    zone_group_state: ZoneGroupState


class AvailableSoftwareUpdate(ZoneLinkEvent):
    """A decoded ZoneGroupTopology AvailableSoftwareUpdate event."""

    service: Literal["ZoneGroupTopology"] = "ZoneGroupTopology"
    name: Literal["AvailableSoftwareUpdate"] = "AvailableSoftwareUpdate"

    type: str | None = Field(None, alias="Type")
    version: str | None = Field(None, alias="Version")
    update_url: str | None = Field(None, alias="UpdateURL")
    download_size: str | None = Field(None, alias="DownloadSize")
    manifest_url: str | None = Field(None, alias="ManifestURL")
    swgen: str | None = Field(None, alias="Swgen")
    latest_swgen: str | None = Field(None, alias="LatestSwgen")
    manifest_revision: str | None = Field(None, alias="ManifestRevision")


Event = (
    AVTransportLastChange
    | RenderingControlLastChange
    | QueueLastChange
    | ZoneGroupStateEvent
    | AvailableSoftwareUpdate
    | StateVariableEvent
)


# Subscriptions ---------------------------------------------------------------


class UPnPSubscription(BaseModel):
    """A GENA subscription to a single service on a zone player."""

    id: SubscriptionId
    event_endpoint: str
    timeout: int | None
    handler: Callable[[Any], None] | None = None
