"""
The phone-side upload page, served unauthenticated at / and /upload.*.
The page reads ?token= from its own URL and posts the files back with it.
"""

UPLOAD_HTML = '''<!DOCTYPE html>
<html lang="en">
<head>
	<meta charset="UTF-8">
	<meta name="viewport" content="width=device-width, initial-scale=1.0">
	<title>Upload Videos</title>
	<link rel="stylesheet" href="/upload.css">
</head>
<body>
	<div class="container">
		<div class="header">
			<h1>Upload Videos</h1>
			<p>Videos are sorted into class folders on the computer</p>
		</div>

		<div class="drop-zone" id="dropZone">
			<div class="icon">&#127916;</div>
			<p>Tap to choose videos</p>
			<input type="file" id="fileInput" accept="video/*" multiple hidden>
		</div>

		<div class="section" id="selectedSection" style="display: none;">
			<div class="section-header">
				<span id="fileCount">0 files</span>
				<span id="totalSize">Total: 0 B</span>
			</div>
			<div id="fileList"></div>
			<button class="btn primary" id="uploadBtn" disabled>Upload</button>
			<button class="btn" id="clearBtn" style="display: none;">Clear</button>
		</div>

		<div class="section" id="progressSection" style="display: none;">
			<div class="section-header">
				<span id="progressText">Uploading...</span>
				<span id="progressPercent">0%</span>
			</div>
			<div class="progress-bar"><div class="progress-fill" id="progressFill"></div></div>
		</div>

		<div class="section" id="resultsSection" style="display: none;">
			<div class="result-icon" id="resultIcon"></div>
			<h2 id="resultTitle"></h2>
			<p id="resultMessage"></p>
			<button class="btn primary" id="uploadMoreBtn">Upload more</button>
		</div>
	</div>
	<script src="/upload.js"></script>
</body>
</html>'''

UPLOAD_CSS = '''* {
	margin: 0;
	padding: 0;
	box-sizing: border-box;
}

body {
	font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif;
	background: #f5f5f5;
	padding: 20px;
}

.container {
	max-width: 480px;
	margin: 0 auto;
	background: white;
	border: 1px solid #ddd;
}

.header {
	background: #333;
	color: white;
	padding: 20px;
	text-align: center;
}

.drop-zone {
	margin: 20px;
	padding: 40px 20px;
	border: 2px dashed #999;
	text-align: center;
	cursor: pointer;
}

.drop-zone.drag-over {
	border-color: #333;
	background: #f9f9f9;
}

.icon, .result-icon {
	font-size: 48px;
	margin-bottom: 10px;
}

.section {
	padding: 20px;
	border-top: 1px solid #ddd;
}

.section-header {
	display: flex;
	justify-content: space-between;
	margin-bottom: 10px;
}

.file-item {
	display: flex;
	justify-content: space-between;
	padding: 8px 0;
	border-bottom: 1px solid #eee;
	font-size: 14px;
	word-break: break-all;
}

.progress-bar {
	height: 12px;
	background: #eee;
}

.progress-fill {
	height: 100%;
	width: 0%;
	background: #333;
}

.btn {
	width: 100%;
	padding: 12px;
	margin-top: 10px;
	border: 1px solid #333;
	background: white;
	font-size: 16px;
}

.btn.primary {
	background: #333;
	color: white;
}

.btn:disabled {
	opacity: 0.5;
}'''

UPLOAD_JS = '''const dropZone = document.getElementById('dropZone');
const fileInput = document.getElementById('fileInput');
const selectedSection = document.getElementById('selectedSection');
const fileList = document.getElementById('fileList');
const fileCount = document.getElementById('fileCount');
const totalSize = document.getElementById('totalSize');
const progressSection = document.getElementById('progressSection');
const progressText = document.getElementById('progressText');
const progressPercent = document.getElementById('progressPercent');
const progressFill = document.getElementById('progressFill');
const resultsSection = document.getElementById('resultsSection');
const resultIcon = document.getElementById('resultIcon');
const resultTitle = document.getElementById('resultTitle');
const resultMessage = document.getElementById('resultMessage');
const uploadBtn = document.getElementById('uploadBtn');
const clearBtn = document.getElementById('clearBtn');
const uploadMoreBtn = document.getElementById('uploadMoreBtn');

const VIDEO_TYPES = ['video/mp4', 'video/mkv', 'video/avi', 'video/mov', 'video/wmv', 'video/flv',
	'video/webm', 'video/x-matroska', 'video/quicktime', 'video/x-msvideo', 'video/x-ms-wmv'];
const VIDEO_EXTS = ['.mp4', '.mkv', '.avi', '.mov', '.wmv', '.flv', '.webm', '.m4v'];

let selectedFiles = [];

function getToken() {
	return new URLSearchParams(window.location.search).get('token') || '';
}

function formatSize(bytes) {
	const units = ['B', 'KB', 'MB', 'GB'];
	let size = bytes;
	let unitIndex = 0;
	while (size >= 1024 && unitIndex < units.length - 1) {
		size /= 1024;
		unitIndex++;
	}
	return `${size.toFixed(1)} ${units[unitIndex]}`;
}

function isVideoFile(file) {
	const ext = '.' + file.name.split('.').pop().toLowerCase();
	return VIDEO_TYPES.includes(file.type) || VIDEO_EXTS.includes(ext);
}

function show(element, visible) {
	element.style.display = visible ? 'block' : 'none';
}

function handleFiles(files) {
	const videoFiles = Array.from(files).filter(isVideoFile);
	if (videoFiles.length === 0) {
		alert('Please select video files only.');
		return;
	}
	selectedFiles = videoFiles;
	renderFileList();
	show(selectedSection, true);
	show(clearBtn, true);
	show(progressSection, false);
	show(resultsSection, false);
}

function renderFileList() {
	fileList.innerHTML = '';
	let total = 0;
	selectedFiles.forEach((file) => {
		total += file.size;
		const item = document.createElement('div');
		item.className = 'file-item';
		const name = document.createElement('span');
		name.textContent = file.name;
		const size = document.createElement('span');
		size.textContent = formatSize(file.size);
		item.appendChild(name);
		item.appendChild(size);
		fileList.appendChild(item);
	});
	fileCount.textContent = `${selectedFiles.length} file${selectedFiles.length !== 1 ? 's' : ''}`;
	totalSize.textContent = `Total: ${formatSize(total)}`;
	uploadBtn.disabled = selectedFiles.length === 0;
}

function uploadFiles() {
	if (selectedFiles.length === 0) return;

	show(dropZone, false);
	show(selectedSection, false);
	show(progressSection, true);
	uploadBtn.disabled = true;

	const formData = new FormData();
	selectedFiles.forEach((file) => formData.append('files', file));

	const token = getToken();
	const xhr = new XMLHttpRequest();

	xhr.upload.addEventListener('progress', (e) => {
		if (e.lengthComputable) {
			const percent = Math.round((e.loaded / e.total) * 100);
			progressFill.style.width = `${percent}%`;
			progressPercent.textContent = `${percent}%`;
			progressText.textContent = 'Uploading...';
		}
	});

	xhr.addEventListener('load', () => {
		let body = {};
		try {
			body = JSON.parse(xhr.responseText);
		} catch (e) {
			body = {};
		}
		if (xhr.status === 200) {
			showResults(true, body);
		} else if (xhr.status === 401) {
			showResults(false, { error: 'Session expired. Please scan the QR code again.' });
		} else if (xhr.status === 400 && body.error) {
			showResults(false, { error: body.error });
		} else {
			showResults(false, { error: 'Upload failed. Please try again.' });
		}
	});

	xhr.addEventListener('error', () => {
		showResults(false, { error: 'Server unreachable. Make sure you are connected to the same Wi-Fi.' });
	});

	xhr.open('POST', '/upload' + (token ? `?token=${encodeURIComponent(token)}` : ''));
	xhr.send(formData);
}

function showResults(success, result) {
	show(progressSection, false);
	show(resultsSection, true);
	if (success) {
		const uploaded = (result.uploaded || []).length;
		const failed = (result.failed || []).length + (result.rejected || []).length;
		resultIcon.textContent = '\\u2705';
		resultTitle.textContent = 'Upload Complete!';
		resultMessage.textContent = `${uploaded} video${uploaded !== 1 ? 's' : ''} uploaded successfully.` +
			(failed > 0 ? ` ${failed} failed.` : '');
	} else {
		resultIcon.textContent = '\\u274C';
		resultTitle.textContent = 'Upload Failed';
		resultMessage.textContent = result.error || 'An error occurred.';
	}
}

function resetState() {
	selectedFiles = [];
	fileList.innerHTML = '';
	fileInput.value = '';
	uploadBtn.disabled = true;
	progressFill.style.width = '0%';
	progressPercent.textContent = '0%';
	show(dropZone, true);
	show(selectedSection, false);
	show(progressSection, false);
	show(resultsSection, false);
	show(clearBtn, false);
}

dropZone.addEventListener('click', () => fileInput.click());
fileInput.addEventListener('change', (e) => handleFiles(e.target.files));
dropZone.addEventListener('dragover', (e) => {
	e.preventDefault();
	dropZone.classList.add('drag-over');
});
dropZone.addEventListener('dragleave', () => dropZone.classList.remove('drag-over'));
dropZone.addEventListener('drop', (e) => {
	e.preventDefault();
	dropZone.classList.remove('drag-over');
	handleFiles(e.dataTransfer.files);
});
uploadBtn.addEventListener('click', uploadFiles);
clearBtn.addEventListener('click', resetState);
uploadMoreBtn.addEventListener('click', resetState);
document.addEventListener('dragover', (e) => e.preventDefault());
document.addEventListener('drop', (e) => e.preventDefault());'''
