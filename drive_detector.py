"""
Removable drive detection.

Each platform gets its own DriveLister that shells out to the OS and returns a
list of drive dicts:

	{device, label, path, size, freeSpace, isUSB}

DriveDetector polls a lister on an interval and calls back only when the list
actually changed.
"""
import os
import sys
import json
import shutil
import threading
import subprocess
import logging

from constants import POLL_INTERVAL

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 15

# Win32_LogicalDisk.DriveType
DRIVE_TYPE_REMOVABLE = 2
DRIVE_TYPE_LOCAL = 3


def get_drive_space(drive_path):
	"""
	Free/used/total bytes for the volume holding drive_path. Zeros if it cannot be queried.
	"""
	try:
		usage = shutil.disk_usage(drive_path)
		return {'free': usage.free, 'used': usage.used, 'total': usage.total}
	except OSError as e:
		logger.warning(f"Could not query drive space for {drive_path}: {e}")
		return {'free': 0, 'used': 0, 'total': 0}

def _run_command(args):
	result = subprocess.run(
		args,
		capture_output=True,
		text=True,
		timeout=COMMAND_TIMEOUT
	)
	if result.returncode != 0:
		raise RuntimeError(f"{args[0]} exited with {result.returncode}: {result.stderr.strip()}")
	return result.stdout


class DriveLister:
	"""
	Enumerates mounted volumes that can be exported to.
	"""

	def list_drives(self):
		raise NotImplementedError


class WindowsDriveLister(DriveLister):

	PS_SCRIPT = 'Get-WmiObject Win32_LogicalDisk | Select-Object DeviceID, VolumeName, Size, FreeSpace, DriveType | ConvertTo-Json'

	def __init__(self, system_drive=None):
		self.system_drive = (system_drive or os.environ.get('SystemDrive', 'C:')).upper()

	def run(self):
		return _run_command(['powershell', '-NoProfile', '-Command', self.PS_SCRIPT])

	def parse(self, output):
		if not output.strip():
			return []
		parsed = json.loads(output)
		# A single disk comes back as an object instead of a list
		disks = parsed if isinstance(parsed, list) else [parsed]

		drives = []
		for disk in disks:
			device = disk.get('DeviceID')
			drive_type = disk.get('DriveType')
			if not device or device.upper() == self.system_drive:
				continue
			if drive_type not in (DRIVE_TYPE_REMOVABLE, DRIVE_TYPE_LOCAL):
				continue
			drives.append({
				'device': device,
				'label': disk.get('VolumeName') or 'External Drive',
				'path': device + '\\',
				'size': disk.get('Size') or 0,
				'freeSpace': disk.get('FreeSpace') or 0,
				'isUSB': drive_type == DRIVE_TYPE_REMOVABLE
			})
		return drives

	def list_drives(self):
		return self.parse(self.run())


class MacDriveLister(DriveLister):

	def __init__(self, volumes_dir='/Volumes', boot_volume='Macintosh HD'):
		self.volumes_dir = volumes_dir
		self.boot_volume = boot_volume

	def list_drives(self):
		drives = []
		for name in sorted(os.listdir(self.volumes_dir)):
			if not name or name.startswith('.') or name == self.boot_volume:
				continue
			path = os.path.join(self.volumes_dir, name)
			# The boot volume is usually a symlink to /
			if os.path.realpath(path) == '/':
				continue
			space = get_drive_space(path)
			drives.append({
				'device': name,
				'label': name,
				'path': path,
				'size': space['total'],
				'freeSpace': space['free'],
				'isUSB': True
			})
		return drives


class LinuxDriveLister(DriveLister):

	MEDIA_PREFIXES = ('/media', '/run/media', '/mnt')

	def run(self):
		return _run_command(['lsblk', '-J', '-b', '-o', 'NAME,MOUNTPOINT,SIZE,FSTYPE,LABEL,RM'])

	def _mountpoint(self, device):
		mountpoint = device.get('mountpoint')
		if not mountpoint:
			# newer lsblk reports a list
			mountpoints = [m for m in (device.get('mountpoints') or []) if m]
			mountpoint = mountpoints[0] if mountpoints else None
		return mountpoint

	def is_media_mount(self, mountpoint):
		return any(mountpoint == prefix or mountpoint.startswith(prefix + '/') for prefix in self.MEDIA_PREFIXES)

	def _walk(self, devices):
		for device in devices or []:
			yield device
			yield from self._walk(device.get('children'))

	def parse(self, output):
		data = json.loads(output)
		drives = []
		for device in self._walk(data.get('blockdevices')):
			mountpoint = self._mountpoint(device)
			if not mountpoint or not self.is_media_mount(mountpoint):
				continue
			size = device.get('size') or 0
			try:
				size = int(size)
			except (TypeError, ValueError):
				size = 0
			drives.append({
				'device': f"/dev/{device['name']}",
				'label': device.get('label') or os.path.basename(mountpoint),
				'path': mountpoint,
				'size': size,
				'freeSpace': get_drive_space(mountpoint)['free'],
				'isUSB': True
			})
		return drives

	def list_drives(self):
		return self.parse(self.run())


def get_drive_lister(platform=None):
	platform = platform or sys.platform
	if platform.startswith('win'):
		return WindowsDriveLister()
	if platform == 'darwin':
		return MacDriveLister()
	return LinuxDriveLister()


class DriveDetector:
	"""
	Polls a DriveLister and notifies on change.

	The callback runs while the detector lock is held, and stop_polling() takes
	the same lock, so once stop_polling() returns no further callback can fire.
	Each start/stop bumps a generation number; a detection that was already in
	flight when polling stopped finishes but its result is dropped.
	"""

	def __init__(self, lister=None, poll_interval=POLL_INTERVAL, on_change=None):
		self.lister = lister or get_drive_lister()
		self.poll_interval = poll_interval
		self.on_change = on_change
		self.drives = []
		self.polling = False
		self._lock = threading.RLock()
		self._generation = 0
		self._stop_event = threading.Event()
		self._thread = None

	def detect_drives(self):
		"""
		Current drive list; failures are logged and give an empty list.
		"""
		try:
			return self.lister.list_drives()
		except Exception as e:
			logger.error(f"Error detecting drives: {e}", exc_info=True)
			return []

	def _apply(self, drives, generation):
		with self._lock:
			if generation != self._generation:
				return False
			if drives == self.drives:
				return False
			self.drives = drives
			if self.on_change:
				try:
					self.on_change(list(drives))
				except Exception as e:
					logger.error(f"Drive change callback failed: {e}", exc_info=True)
			return True

	def refresh(self):
		"""
		Run one detection tick. Returns True if the drive list changed.
		"""
		with self._lock:
			generation = self._generation
		return self._apply(self.detect_drives(), generation)

	def _poll_loop(self, generation, stop_event):
		while not stop_event.is_set():
			drives = self.detect_drives()
			if stop_event.is_set():
				break
			self._apply(drives, generation)
			stop_event.wait(self.poll_interval)

	def start_polling(self, on_change=None):
		with self._lock:
			if self.polling:
				return
			if on_change is not None:
				self.on_change = on_change
			self.polling = True
			self._generation += 1
			self._stop_event = threading.Event()
			self._thread = threading.Thread(
				target=self._poll_loop,
				args=(self._generation, self._stop_event),
				name='drive-detector',
				daemon=True
			)
			self._thread.start()

	def stop_polling(self, timeout=None):
		with self._lock:
			if not self.polling:
				return
			self.polling = False
			self._generation += 1
			self._stop_event.set()
			thread = self._thread
			self._thread = None

		# Can't join ourselves when stopped from inside the callback
		if thread is not None and thread is not threading.current_thread():
			thread.join(timeout if timeout is not None else self.poll_interval + COMMAND_TIMEOUT)

	def get_drives(self):
		with self._lock:
			return list(self.drives)

	def find_drive(self, drive_id):
		for drive in self.get_drives():
			if drive.get('device') == drive_id or drive.get('path') == drive_id:
				return drive
		return None
