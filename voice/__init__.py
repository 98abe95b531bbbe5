"""
Voice Subsystem — microphone, speaker and stress-from-voice features.

Modules:
- analysis: AnalyserNode-style spectrum + stress mapping constants
- slots: single-occupant registry for exclusive device sessions
- devices: sounddevice input/output adapters and their errors
- stress_monitor: time-boxed vocal stress sampling session
- capture: push-to-talk recording → transcription
- playback: read-aloud of assistant messages (one at a time)
- providers: OpenAI speech-to-text / text-to-speech clients
"""
from voice.analysis import (
    FrequencyAnalyser, average_energy, raw_stress, smooth, final_level,
)
from voice.slots import SingleSlot
from voice.devices import (
    AudioBuffer, AudioStream, AudioInput, AudioOutput, PlaybackContext,
    SoundDeviceMicrophone, SoundDeviceOutput,
    MicrophoneError, MicrophonePermissionDenied, MicrophoneUnavailable, AudioOutputError,
)
from voice.stress_monitor import AudioStressMonitor, MonitoringSession
from voice.capture import VoiceCaptureService, AudioClip, encode_wav, MICROPHONE_NOTICE
from voice.playback import SpeechSynthesisPlayer
from voice.providers import (
    STTProvider, TTSProvider, STTConfig, TTSConfig,
    Transcriber, SpeechSynthesizer, OpenAITranscriber, OpenAISpeechSynthesizer,
    create_transcriber, create_synthesizer,
)

__all__ = [
    "FrequencyAnalyser", "average_energy", "raw_stress", "smooth", "final_level",
    "SingleSlot",
    "AudioBuffer", "AudioStream", "AudioInput", "AudioOutput", "PlaybackContext",
    "SoundDeviceMicrophone", "SoundDeviceOutput",
    "MicrophoneError", "MicrophonePermissionDenied", "MicrophoneUnavailable", "AudioOutputError",
    "AudioStressMonitor", "MonitoringSession",
    "VoiceCaptureService", "AudioClip", "encode_wav", "MICROPHONE_NOTICE",
    "SpeechSynthesisPlayer",
    "STTProvider", "TTSProvider", "STTConfig", "TTSConfig",
    "Transcriber", "SpeechSynthesizer", "OpenAITranscriber", "OpenAISpeechSynthesizer",
    "create_transcriber", "create_synthesizer",
]
