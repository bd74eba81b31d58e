from .fs import ensure_dir
from .json import read_json, dump_json, iter_jsonl
from .replay import ReplayFrameSource
from .video import VideoInfo, VideoFrameSource, open_video, get_video_info

__all__ = [
    "ensure_dir",
    "read_json",
    "dump_json",
    "iter_jsonl",
    "ReplayFrameSource",
    "VideoInfo",
    "VideoFrameSource",
    "open_video",
    "get_video_info",
]
